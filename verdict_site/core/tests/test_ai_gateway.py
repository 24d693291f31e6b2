from types import SimpleNamespace
from unittest import mock

import httpx
import openai
from django.test import SimpleTestCase, override_settings

from core.services.ai_gateway import OpenAIGateway
from core.services.results import ErrorKind
from prompts import DEFAULT_SYSTEM_MESSAGE


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@override_settings(OPENAI_MODEL_NAME="test-model", OPENAI_MAX_TOKENS=100, OPENAI_TEMPERATURE=0.2, AI_SYSTEM_MESSAGE="")
class OpenAIGatewayTests(SimpleTestCase):
    def setUp(self):
        self.client = mock.MagicMock()
        self.create = self.client.chat.completions.create
        self.gateway = OpenAIGateway(client=self.client)

    def test_generate_prepends_the_system_message(self):
        self.create.return_value = completion("  Hello there  ")

        result = self.gateway.generate([{"role": "user", "content": "Hi", "timestamp": "ignored"}])

        self.assertTrue(result.ok)
        self.assertEqual(result.value, "Hello there")
        kwargs = self.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "test-model")
        self.assertEqual(kwargs["max_tokens"], 100)
        self.assertEqual(
            kwargs["messages"],
            [{"role": "system", "content": DEFAULT_SYSTEM_MESSAGE}, {"role": "user", "content": "Hi"}],
        )

    def test_generate_with_topic(self):
        self.create.return_value = completion("ok")
        self.gateway.generate([{"role": "user", "content": "Hi"}], guiding_question="Is X good?")
        system = self.create.call_args.kwargs["messages"][0]
        self.assertEqual(system["role"], "system")
        self.assertIn("Is X good?", system["content"])

    @override_settings(AI_SYSTEM_MESSAGE="Be brief.")
    def test_configured_system_message_wins(self):
        self.create.return_value = completion("ok")
        self.gateway.generate([{"role": "user", "content": "Hi"}])
        self.assertEqual(self.create.call_args.kwargs["messages"][0]["content"], "Be brief.")

    def test_compare_names_both_participants(self):
        self.create.return_value = completion("Verdict")

        result = self.gateway.compare("Yes", "No", "Is X good?", "alice", "bob")

        self.assertEqual(result.value, "Verdict")
        prompt = self.create.call_args.kwargs["messages"][-1]["content"]
        for fragment in ("Is X good?", "alice", "bob", "Yes", "No"):
            self.assertIn(fragment, prompt)

    def test_timeout_becomes_upstream_failure(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        self.create.side_effect = openai.APITimeoutError(request=request)

        with self.assertLogs("core.services.ai_gateway", level="WARNING"):
            result = self.gateway.compare("Yes", "No", "Q", "alice", "bob")

        self.assertEqual(result.kind, ErrorKind.UPSTREAM_FAILURE)

    def test_empty_completion_becomes_upstream_failure(self):
        self.create.return_value = completion("   ")
        self.assertEqual(self.gateway.generate([{"role": "user", "content": "Hi"}]).kind, ErrorKind.UPSTREAM_FAILURE)

        self.create.return_value = SimpleNamespace(choices=[])
        self.assertEqual(self.gateway.generate([{"role": "user", "content": "Hi"}]).kind, ErrorKind.UPSTREAM_FAILURE)
