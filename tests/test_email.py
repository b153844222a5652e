from __future__ import annotations

import json

import httpx
import pytest

from skyview.config import EmailConfig
from skyview.errors import EmailConfigurationError, EmailSendError
from skyview.services.email import EmailSender


def _sender(handler, **overrides) -> EmailSender:
    config = EmailConfig(api_key="re_test", sender="SkyView <forecast@skyview.test>", **overrides)
    return EmailSender(httpx.AsyncClient(transport=httpx.MockTransport(handler)), config=config)


@pytest.mark.anyio
async def test_send_posts_message_with_bearer_token():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("Authorization")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "email_123"})

    await _sender(handler).send(to="reader@example.com", subject="Hello", html="<p>Hi</p>")

    assert captured["url"] == "https://api.resend.com/emails"
    assert captured["auth"] == "Bearer re_test"
    assert captured["body"] == {
        "from": "SkyView <forecast@skyview.test>",
        "to": "reader@example.com",
        "subject": "Hello",
        "html": "<p>Hi</p>",
    }


@pytest.mark.anyio
async def test_rejected_message_raises_with_provider_text():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, text="invalid recipient")

    with pytest.raises(EmailSendError, match="invalid recipient"):
        await _sender(handler).send(to="bad", subject="Hello", html="<p>Hi</p>")


@pytest.mark.anyio
async def test_missing_credentials_fail_before_any_request():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(200)

    sender = EmailSender(httpx.AsyncClient(transport=httpx.MockTransport(handler)), config=EmailConfig())

    with pytest.raises(EmailConfigurationError):
        await sender.send(to="reader@example.com", subject="Hello", html="<p>Hi</p>")
    assert calls["count"] == 0
