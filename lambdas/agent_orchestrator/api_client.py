# lambdas/agent_orchestrator/api_client.py
import json

import requests

from lambdas.agent_orchestrator.scheduler import determine_content_types

REQUEST_TIMEOUT_SECONDS = 10
GENERATE_TIMEOUT_SECONDS = 60


class AgentAPIClient:
    """
    Talks to the agent HTTP API (campaigns, content, facebook routes) with an X-Api-Key.

    Listing calls log and return an empty list on network errors so one outage
    skips a step instead of aborting the run; generate and publish raise.
    """
    def __init__(self, base_url: str, api_key: str):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key

    def _headers(self) -> dict:
        return {'X-Api-Key': self.api_key, 'Content-Type': 'application/json'}

    def _get(self, path: str, params: dict | None = None) -> dict:
        response = requests.get(
            f"{self.base_url}{path}",
            params=params,
            headers=self._headers(),
            timeout=REQUEST_TIMEOUT_SECONDS
        )
        response.raise_for_status()
        return response.json()

    def _post(self, path: str, payload: dict, timeout: int = REQUEST_TIMEOUT_SECONDS) -> dict:
        response = requests.post(
            f"{self.base_url}{path}",
            data=json.dumps(payload),
            headers=self._headers(),
            timeout=timeout
        )
        response.raise_for_status()
        return response.json()

    def _list(self, path: str, params: dict, description: str) -> list:
        try:
            return self._get(path, params).get('items', [])
        except requests.exceptions.RequestException as e:
            print(f"⚠️ Error getting {description}: {e}")
            return []

    def get_active_campaigns(self) -> list:
        return self._list('/campaigns/list', {'status': 'active'}, 'active campaigns')

    def list_content(self, status: str, limit: int | None = None) -> list:
        params = {'status': status}
        if limit:
            params['limit'] = limit
        return self._list('/content/list', params, f"{status} content")

    def list_targets(self, platform: str | None = None, status: str = 'active') -> list:
        params = {'status': status}
        if platform:
            params['platform'] = platform
        return self._list('/facebook/targets/list', params, 'targets')

    def get_targets_for_campaign(self, campaign: dict) -> list:
        platforms = (campaign.get('contentSchedule') or {}).get('platforms') or ['facebook']
        return self.list_targets(platforms[0])

    def get_target(self, target_id: str | None) -> dict | None:
        if not target_id:
            return None
        return next((t for t in self.list_targets() if t.get('targetId') == target_id), None)

    def generate_for_campaign(self, campaign: dict) -> dict:
        """Generates the campaign's first scheduled content type through /content/generate."""
        content_type = determine_content_types(campaign)[0]
        platforms = (campaign.get('contentSchedule') or {}).get('platforms') or ['facebook']
        payload = {
            'campaignId': campaign['campaignId'],
            'type': content_type,
            'platform': platforms[0],
            'variables': {
                'campaignName': campaign.get('name'),
                'targetAudience': json.dumps(campaign.get('targetAudience', {}), default=str),
                'keyFeatures': campaign.get('description'),
                'ctaUrl': campaign.get('landingPageUrl'),
            },
        }
        return self._post('/content/generate', payload, timeout=GENERATE_TIMEOUT_SECONDS)['content']

    def publish(self, content: dict, target: dict) -> dict:
        payload = {
            'contentId': content['contentId'],
            'targetId': target['targetId'],
            'message': content.get('body'),
            'link': (content.get('metadata') or {}).get('ctaUrl'),
        }
        return self._post('/facebook/publish', payload)

    def get_analytics(self, content_id: str) -> list:
        try:
            return self._get('/facebook/analytics', {'contentId': content_id}).get('analytics', [])
        except requests.exceptions.RequestException as e:
            print(f"⚠️ Error collecting analytics for {content_id}: {e}")
            return []
