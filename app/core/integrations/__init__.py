from app.core.integrations.webhooks import dispatch_webhook, sign_payload
from app.core.integrations.email import send_email, send_welcome_email
from app.core.integrations.storage import save_upload, proof_type_from_mime

__all__ = [
    "dispatch_webhook", "sign_payload",
    "send_email", "send_welcome_email",
    "save_upload", "proof_type_from_mime",
]
