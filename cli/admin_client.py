import argparse
import json
import os
import sys

import requests
from dotenv import load_dotenv

# Load environment variables from a .env file for local use
load_dotenv()

REQUEST_TIMEOUT_SECONDS = 10


def get_admin_config() -> tuple[str | None, str | None]:
    return os.environ.get("API_BASE_URL"), os.environ.get("MASTER_KEY")


def call_admin_api(method: str, path: str, base_url: str, master_key: str,
                   payload: dict | None = None, params: dict | None = None) -> dict:
    """Sends one request to the API key admin endpoints and returns the decoded JSON body."""
    response = requests.request(
        method,
        f"{base_url.rstrip('/')}{path}",
        headers={'X-Master-Key': master_key, 'Content-Type': 'application/json'},
        data=json.dumps(payload) if payload is not None else None,
        params=params,
        timeout=REQUEST_TIMEOUT_SECONDS
    )
    response.raise_for_status()
    return response.json()


def create_key(args: argparse.Namespace, base_url: str, master_key: str) -> dict:
    payload = {'name': args.name, 'expiresInDays': args.expires_in_days}
    if args.description:
        payload['description'] = args.description
    if args.permission:
        payload['permissions'] = args.permission
    return call_admin_api('POST', '/api-keys/create', base_url, master_key, payload=payload)


def list_keys(args: argparse.Namespace, base_url: str, master_key: str) -> dict:
    return call_admin_api('GET', '/api-keys/list', base_url, master_key, params={'status': args.status})


def revoke_key(args: argparse.Namespace, base_url: str, master_key: str) -> dict:
    return call_admin_api('POST', '/api-keys/revoke', base_url, master_key, payload={'keyId': args.key_id})


COMMANDS = {
    'create': create_key,
    'list': list_keys,
    'revoke': revoke_key,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ProDentHub API key admin")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create_parser = subparsers.add_parser("create", help="Create an API key (the secret is shown once)")
    create_parser.add_argument("name", help="Human readable key name")
    create_parser.add_argument("--description", default="", help="What the key is for")
    create_parser.add_argument("--permission", action="append", help="Permission to grant (repeatable)")
    create_parser.add_argument("--expires-in-days", type=int, default=365, help="Days until the key expires")

    list_parser = subparsers.add_parser("list", help="List API keys")
    list_parser.add_argument("--status", default="active", choices=["active", "revoked"])

    revoke_parser = subparsers.add_parser("revoke", help="Revoke an API key")
    revoke_parser.add_argument("key_id", help="keyId of the key to revoke")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    base_url, master_key = get_admin_config()
    if not (base_url and master_key):
        print("❌ ERROR: API_BASE_URL and MASTER_KEY must be set. Please create a .env file.")
        return 1

    try:
        result = COMMANDS[args.command](args, base_url, master_key)
    except requests.exceptions.RequestException as e:
        print(f"❌ Request failed: {e}")
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
