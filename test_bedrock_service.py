"""Tests for BedrockService construction."""

import pytest

import bedrock_service
from bedrock_service import BedrockService


class _CountingSession:
    """boto3.Session replacement that counts credential lookups."""

    def __init__(self, credentials):
        self.credentials = credentials
        self.lookups = 0

    def get_credentials(self):
        self.lookups += 1
        return self.credentials

    def client(self, name):
        return object()


@pytest.mark.parametrize("credentials, expected", [(object(), True), (None, False)])
def test_credentials_resolved_once_at_build(monkeypatch, credentials, expected):
    session = _CountingSession(credentials)
    monkeypatch.setattr(bedrock_service.boto3, "Session", lambda **kw: session)

    service = BedrockService(model_id="anthropic.claude-test", region="us-east-1")
    results = [service.is_configured() for _ in range(3)]

    assert results == [expected] * 3
    assert session.lookups == 1
