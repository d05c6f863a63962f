# tests/test_ai_client.py
import io
import json
import unittest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError

from lambdas.common.ai_client import AIGenerationError, ContentAIClient


def bedrock_response(payload: dict) -> dict:
    return {"body": io.BytesIO(json.dumps(payload).encode("utf-8"))}


class TestContentAIClient(unittest.TestCase):

    def test_claude_request_and_response(self):
        runtime = MagicMock()
        runtime.invoke_model.return_value = bedrock_response({"content": [{"type": "text", "text": "Hello dentists"}]})
        client = ContentAIClient(provider="bedrock", model_id="anthropic.claude-3-5-sonnet-20241022-v2:0",
                                 bedrock_runtime=runtime)

        self.assertEqual(client.generate("Write a post"), "Hello dentists")

        kwargs = runtime.invoke_model.call_args.kwargs
        body = json.loads(kwargs["body"])
        self.assertEqual(kwargs["modelId"], "anthropic.claude-3-5-sonnet-20241022-v2:0")
        self.assertEqual(body["anthropic_version"], "bedrock-2023-05-31")
        self.assertEqual(body["max_tokens"], 2000)
        self.assertEqual(body["messages"][0]["content"][0]["text"], "Write a post")

    def test_nova_request_and_response(self):
        runtime = MagicMock()
        runtime.invoke_model.return_value = bedrock_response(
            {"output": {"message": {"content": [{"text": "Nova says hi"}]}}})
        client = ContentAIClient(provider="bedrock", model_id="amazon.nova-pro-v1:0", bedrock_runtime=runtime)

        self.assertEqual(client.generate("prompt"), "Nova says hi")
        body = json.loads(runtime.invoke_model.call_args.kwargs["body"])
        self.assertEqual(body["inferenceConfig"], {"maxTokens": 2000})

    def test_openai_provider(self):
        openai_client = MagicMock()
        completion = MagicMock()
        completion.choices[0].message.content = "From OpenAI"
        openai_client.chat.completions.create.return_value = completion
        client = ContentAIClient(provider="openai", model_id="gpt-4o-mini", openai_client=openai_client)

        self.assertEqual(client.generate("prompt"), "From OpenAI")
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4o-mini")
        self.assertEqual(kwargs["messages"], [{"role": "user", "content": "prompt"}])

    def test_provider_failure_raises_generation_error(self):
        runtime = MagicMock()
        runtime.invoke_model.side_effect = ClientError(
            {"Error": {"Code": "ThrottlingException", "Message": "slow down"}}, "InvokeModel")
        client = ContentAIClient(provider="bedrock", model_id="anthropic.claude-3-haiku", bedrock_runtime=runtime)

        with self.assertRaises(AIGenerationError):
            client.generate("prompt")

    def test_empty_response_raises_generation_error(self):
        runtime = MagicMock()
        runtime.invoke_model.return_value = bedrock_response({"content": []})
        client = ContentAIClient(provider="bedrock", model_id="anthropic.claude-3-haiku", bedrock_runtime=runtime)

        with self.assertRaises(AIGenerationError):
            client.generate("prompt")

    def test_unknown_provider(self):
        with self.assertRaises(ValueError):
            ContentAIClient(provider="carrier-pigeon")


if __name__ == '__main__':
    unittest.main()
