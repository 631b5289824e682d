"""
Tests des webhooks sortants (signature HMAC, relances).
"""

import json

import httpx
import pytest

from app.core.integrations import webhooks
from app.core.integrations.webhooks import build_payload, dispatch_webhook, sign_payload
from app.models import Tenant, WebhookEvent


@pytest.fixture
def no_sleep(monkeypatch):
    delays = []
    monkeypatch.setattr(webhooks._post_webhook.retry, "sleep", delays.append)
    return delays


@pytest.fixture
def webhook_tenant(db_session, tenant: Tenant) -> Tenant:
    tenant.webhook_url = "https://erp.cfa-test.fr/hooks"
    tenant.webhook_secret = "whsec_test"
    db_session.flush()
    return tenant


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestPayload:

    def test_build_payload(self):
        payload = build_payload(3, WebhookEvent.LIVRET_SIGNED, {"livretId": 1})

        assert payload["event"] == "LIVRET_SIGNED"
        assert payload["tenantId"] == 3
        assert payload["data"] == {"livretId": 1}
        assert payload["timestamp"]

    def test_sign_payload(self):
        assert sign_payload(b"{}", "secret") == sign_payload(b"{}", "secret")
        assert sign_payload(b"{}", "secret") != sign_payload(b"{}", "autre")


class TestDispatch:

    def test_no_webhook_configured(self, tenant: Tenant):
        assert dispatch_webhook(tenant, WebhookEvent.LIVRET_SIGNED, {}) is False
        assert dispatch_webhook(None, WebhookEvent.LIVRET_SIGNED, {}) is False

    def test_signed_delivery(self, webhook_tenant: Tenant, no_sleep):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(200)

        assert dispatch_webhook(webhook_tenant, WebhookEvent.LIVRET_SIGNED, {"livretId": 7}, client=_client(handler))

        [request] = received
        body = request.content
        assert request.headers["X-CFA-Event"] == "LIVRET_SIGNED"
        assert request.headers["X-CFA-Signature"] == sign_payload(body, "whsec_test")
        assert json.loads(body)["data"] == {"livretId": 7}
        assert no_sleep == []

    def test_retries_with_backoff(self, webhook_tenant: Tenant, no_sleep):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503) if len(calls) < 4 else httpx.Response(204)

        assert dispatch_webhook(webhook_tenant, "APPRENTICE_SYNCED", {}, client=_client(handler)) is True
        assert len(calls) == 4
        assert no_sleep == [1, 2, 4]

    def test_gives_up_after_max_retries(self, webhook_tenant: Tenant, no_sleep):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connexion refusée", request=request)

        assert dispatch_webhook(webhook_tenant, WebhookEvent.LIVRET_SIGNED, {}, client=_client(handler)) is False
        assert len(calls) == 4
        assert no_sleep == [1, 2, 4]

    def test_server_errors_exhaust_retries(self, webhook_tenant: Tenant, no_sleep):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        assert dispatch_webhook(webhook_tenant, WebhookEvent.LIVRET_SIGNED, {}, client=_client(handler)) is False
        assert len(calls) == 4
        assert no_sleep == [1, 2, 4]
