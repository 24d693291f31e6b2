from __future__ import annotations

from typing import Dict, List, Optional

from django.contrib.auth import get_user_model

from core.services.results import ErrorKind, ServiceResult


class FakeGateway:
    """Stands in for OpenAIGateway and records every call."""

    def __init__(self, reply: str = "Assistant reply", verdict: str = "Verdict text", failure: Optional[str] = None):
        self.reply = reply
        self.verdict = verdict
        self.failure = failure
        self.generate_calls: List[Dict[str, object]] = []
        self.compare_calls: List[tuple] = []

    def generate(self, messages, guiding_question=None) -> ServiceResult:
        self.generate_calls.append({"messages": [dict(m) for m in messages], "guiding_question": guiding_question})
        if self.failure:
            return ServiceResult.fail(ErrorKind.UPSTREAM_FAILURE, self.failure)
        return ServiceResult.success(self.reply)

    def compare(self, conclusion_a, conclusion_b, question, name_a, name_b) -> ServiceResult:
        self.compare_calls.append((conclusion_a, conclusion_b, question, name_a, name_b))
        if self.failure:
            return ServiceResult.fail(ErrorKind.UPSTREAM_FAILURE, self.failure)
        return ServiceResult.success(self.verdict)


def make_user(username: str, password: str = "secret-pass"):
    return get_user_model().objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password=password,
    )
