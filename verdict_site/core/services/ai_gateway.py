"""Text generation gateway used by the chat and comparison services."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict, List, Optional

from django.conf import settings
from openai import OpenAI, OpenAIError

from prompts.prompts import (
    COMPARISON_PROMPT_TEMPLATE,
    DEFAULT_SYSTEM_MESSAGE,
    TOPIC_SYSTEM_MESSAGE_TEMPLATE,
)

from .openai_client import get_openai_client
from .results import ErrorKind, ServiceResult

logger = logging.getLogger(__name__)


class OpenAIGateway:
    """Wraps chat completions so that every failure comes back as UpstreamFailure.

    Timeouts are bounded by the client configuration (OPENAI_TIMEOUT_SECONDS)
    and surface as openai.APITimeoutError, which is an OpenAIError.
    """

    def __init__(self, client: Optional[OpenAI] = None) -> None:
        self.client = client or get_openai_client()

    @property
    def system_message(self) -> str:
        return getattr(settings, "AI_SYSTEM_MESSAGE", "") or DEFAULT_SYSTEM_MESSAGE

    def generate(
        self,
        messages: List[Dict[str, str]],
        guiding_question: Optional[str] = None,
    ) -> ServiceResult:
        """Continue a conversation. `messages` is the ordered user/assistant history."""

        if guiding_question:
            system_content = TOPIC_SYSTEM_MESSAGE_TEMPLATE.format(
                question=guiding_question,
                system_message=self.system_message,
            )
        else:
            system_content = self.system_message

        payload: List[Dict[str, str]] = [{"role": "system", "content": system_content}]
        payload.extend({"role": m["role"], "content": m["content"]} for m in messages)
        return self._complete(payload, purpose="chat")

    def compare(
        self,
        conclusion_a: str,
        conclusion_b: str,
        question: str,
        name_a: str,
        name_b: str,
    ) -> ServiceResult:
        prompt = COMPARISON_PROMPT_TEMPLATE.format(
            question=question,
            name_a=name_a,
            conclusion_a=conclusion_a,
            name_b=name_b,
            conclusion_b=conclusion_b,
        )
        payload = [
            {"role": "system", "content": self.system_message},
            {"role": "user", "content": prompt},
        ]
        return self._complete(payload, purpose="comparison")

    def _complete(self, messages: List[Dict[str, str]], purpose: str) -> ServiceResult:
        try:
            completion = self.client.chat.completions.create(
                model=settings.OPENAI_MODEL_NAME,
                messages=messages,
                max_tokens=settings.OPENAI_MAX_TOKENS,
                temperature=settings.OPENAI_TEMPERATURE,
            )
        except OpenAIError as exc:
            logger.warning("OpenAI %s request failed: %s", purpose, exc)
            return ServiceResult.fail(ErrorKind.UPSTREAM_FAILURE, f"AI service error: {exc}")

        content = ""
        if completion.choices:
            content = (completion.choices[0].message.content or "").strip()
        if not content:
            logger.warning("OpenAI %s request returned an empty completion", purpose)
            return ServiceResult.fail(ErrorKind.UPSTREAM_FAILURE, "AI service returned an empty response")
        return ServiceResult.success(content)


@lru_cache(maxsize=1)
def get_ai_gateway() -> OpenAIGateway:
    return OpenAIGateway()
