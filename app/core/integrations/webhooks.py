"""
Webhooks sortants vers les systèmes des CFA.

Chaque événement est posté en JSON sur tenant.webhook_url :

    {"event": "LIVRET_SIGNED", "timestamp": "...", "tenantId": 3, "data": {...}}

Headers :
- X-CFA-Event : nom de l'événement
- X-CFA-Signature : HMAC-SHA256 (hex) du corps avec le secret du tenant

Un échec n'est jamais propagé à l'appelant : il est journalisé et
dispatch_webhook() retourne False.
"""

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

import httpx
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.core.config import settings
from app.core.security.encryption import open_secret
from app.models.enums import WebhookEvent
from app.models.tenants.tenant import Tenant

logger = logging.getLogger(__name__)


def sign_payload(body: bytes, secret: str) -> str:
    """Signature HMAC-SHA256 hexadécimale du corps de la requête."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def build_payload(tenant_id: int, event: Union[str, WebhookEvent], data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "event": event.value if isinstance(event, WebhookEvent) else event,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "tenantId": tenant_id,
        "data": data,
    }


@retry(
    stop=stop_after_attempt(settings.WEBHOOK_MAX_RETRIES + 1),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type(httpx.HTTPError),
)
def _post_webhook(client: httpx.Client, url: str, body: bytes, headers: Dict[str, str]) -> httpx.Response:
    """POST du corps signé ; toute réponse non 2xx déclenche une relance."""
    try:
        response = client.post(url, content=body, headers=headers)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"⚠️ Webhook {headers['X-CFA-Event']} en échec : {e}")
        raise
    return response


def dispatch_webhook(
    tenant: Optional[Tenant],
    event: Union[str, WebhookEvent],
    data: Dict[str, Any],
    client: Optional[httpx.Client] = None,
) -> bool:
    """
    Envoie un événement au webhook du tenant.

    Une première tentative puis WEBHOOK_MAX_RETRIES relances,
    espacées de 1s, 2s, 4s.

    Returns:
        True si le endpoint a répondu 2xx, False sinon (ou si aucun webhook)
    """
    if tenant is None or not tenant.has_webhook:
        logger.debug("Aucun webhook configuré, événement ignoré")
        return False

    payload = build_payload(tenant.id, event, data)
    body = json.dumps(payload, default=str).encode("utf-8")
    event_name = payload["event"]

    headers = {
        "Content-Type": "application/json",
        "X-CFA-Event": event_name,
    }
    secret = open_secret(tenant.webhook_secret)
    if secret:
        headers["X-CFA-Signature"] = sign_payload(body, secret)

    owns_client = client is None
    client = client or httpx.Client(timeout=settings.WEBHOOK_TIMEOUT_SECONDS)

    try:
        _post_webhook(client, tenant.webhook_url, body, headers)
    except RetryError:
        logger.error(f"❌ Webhook {event_name} abandonné pour le tenant {tenant.id}")
        return False
    finally:
        if owns_client:
            client.close()

    logger.info(f"🔗 Webhook {event_name} livré au tenant {tenant.id}")
    return True
