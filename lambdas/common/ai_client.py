# lambdas/common/ai_client.py
import json
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from openai import OpenAI, OpenAIError

from lambdas.common.settings import get_settings

MAX_TOKENS = 2000


class AIGenerationError(RuntimeError):
    """Raised when the configured LLM provider fails to return text."""
    pass


class ContentAIClient:
    """
    Sends a single prompt to the configured LLM provider and returns the completion text.

    Two providers are supported:
      - "bedrock": Anthropic Claude (or Amazon Nova) models through Amazon Bedrock.
      - "openai": OpenAI chat completions.
    """
    def __init__(self, provider: Optional[str] = None, model_id: Optional[str] = None,
                 bedrock_runtime=None, openai_client=None):
        settings = get_settings()
        self.provider = (provider or settings.ai_provider).lower()
        self.model_id = model_id or settings.ai_model

        if self.provider == "bedrock":
            self.bedrock_runtime = bedrock_runtime or boto3.client(
                service_name="bedrock-runtime",
                region_name=settings.aws_region,
            )
            self.openai_client = None
        elif self.provider == "openai":
            self.openai_client = openai_client or OpenAI(api_key=settings.openai_api_key)
            self.bedrock_runtime = None
        else:
            raise ValueError(f"Unsupported AI provider: {self.provider}")

    def generate(self, prompt: str) -> str:
        """
        Returns the model's reply to `prompt`.

        Raises:
            AIGenerationError: If the provider call fails or returns no text.
        """
        try:
            if self.provider == "openai":
                text = self._generate_openai(prompt)
            else:
                text = self._generate_bedrock(prompt)
        except (BotoCoreError, ClientError, OpenAIError, ValueError, KeyError, IndexError, TypeError) as e:
            print(f"AI API error: {e}")
            raise AIGenerationError(f"AI generation failed: {e}") from e

        if not text:
            raise AIGenerationError("AI generation failed: empty response from model")
        return text

    def _generate_openai(self, prompt: str) -> Optional[str]:
        completion = self.openai_client.chat.completions.create(
            model=self.model_id,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=MAX_TOKENS,
        )
        return completion.choices[0].message.content

    def _generate_bedrock(self, prompt: str) -> Optional[str]:
        response = self.bedrock_runtime.invoke_model(
            modelId=self.model_id,
            body=json.dumps(self._build_request_body(prompt)),
            accept="application/json",
            contentType="application/json",
        )
        response_body = json.loads(response["body"].read())
        return self._extract_text_from_response(response_body)

    def _build_request_body(self, prompt: str) -> Dict[str, Any]:
        """
        Returns the JSON payload required by the current model family so the
        model id can be swapped through the AI_MODEL environment variable.
        """
        if self.model_id.startswith("amazon.nova"):
            return {
                "messages": [{"role": "user", "content": [{"text": prompt}]}],
                "inferenceConfig": {"maxTokens": MAX_TOKENS},
            }
        # Anthropic Claude models
        return {
            "messages": [{"role": "user", "content": [{"type": "text", "text": prompt}]}],
            "max_tokens": MAX_TOKENS,
            "anthropic_version": "bedrock-2023-05-31",
        }

    @staticmethod
    def _extract_text_from_response(body: Dict[str, Any]) -> Optional[str]:
        # Amazon Nova
        if "output" in body:
            for block in body.get("output", {}).get("message", {}).get("content", []):
                if isinstance(block, dict) and block.get("text"):
                    return block["text"]

        # Claude-family
        if isinstance(body.get("content"), list) and body["content"]:
            first = body["content"][0]
            if isinstance(first, dict) and first.get("text"):
                return first["text"]
        return None
