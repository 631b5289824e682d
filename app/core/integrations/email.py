"""
Envoi d'emails transactionnels par SMTP.

Les paramètres SMTP sont administrés par les super-admins dans
PlatformConfig (groupe TECH) : smtp_host, smtp_port, smtp_user, smtp_pass.
Sans configuration, l'email est seulement journalisé (mode développement).
"""

import logging
import smtplib
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security.encryption import open_secret
from app.models.platform.platform_config import PlatformConfig

logger = logging.getLogger(__name__)

DEFAULT_SMTP_PORT = 587


def get_platform_configs(db: Session, *keys: str) -> Dict[str, Optional[str]]:
    """Lit plusieurs clés de PlatformConfig (secrets déchiffrés)."""
    rows = db.execute(
        select(PlatformConfig).where(PlatformConfig.key.in_(keys))
    ).scalars().all()
    values = {key: None for key in keys}
    for row in rows:
        values[row.key] = open_secret(row.value) if row.is_secret else row.value
    return values


def send_email(db: Session, to: str, subject: str, html: str) -> bool:
    """
    Envoie un email HTML.

    Returns:
        True si l'email a été remis au serveur SMTP, False sinon
    """
    config = get_platform_configs(
        db, "smtp_host", "smtp_port", "smtp_user", "smtp_pass",
        "platform_name", "support_email",
    )

    if not config["smtp_host"] or not config["smtp_user"] or not config["smtp_pass"]:
        logger.info(f"📧 [DEV EMAIL] à {to} : {subject}")
        return False

    from_name = config["platform_name"] or settings.DEFAULT_BRAND_NAME
    from_email = config["support_email"] or settings.SMTP_FROM_EMAIL

    try:
        port = int(config["smtp_port"] or DEFAULT_SMTP_PORT)
    except ValueError:
        port = DEFAULT_SMTP_PORT

    message = MIMEText(html, "html", "utf-8")
    message["Subject"] = subject
    message["From"] = formataddr((from_name, from_email))
    message["To"] = to

    try:
        with smtplib.SMTP(config["smtp_host"], port, timeout=10) as server:
            server.starttls()
            server.login(config["smtp_user"], config["smtp_pass"])
            server.sendmail(from_email, [to], message.as_string())
        logger.info(f"📧 Email envoyé à {to} : {subject}")
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"❌ Erreur envoi email à {to} : {e}")
        return False


def send_welcome_email(db: Session, to: str, cfa_name: str, temporary_password: Optional[str] = None) -> bool:
    """Email de bienvenue d'un nouvel administrateur de CFA."""
    login_url = f"{settings.APP_BASE_URL}/login"
    password_line = (
        f"<p>Mot de passe temporaire : <strong>{temporary_password}</strong></p>"
        if temporary_password else ""
    )
    html = (
        f"<h1>Bienvenue sur {settings.DEFAULT_BRAND_NAME}</h1>"
        f"<p>L'espace de {cfa_name} est prêt.</p>"
        f"{password_line}"
        f"<p><a href=\"{login_url}\">Se connecter</a></p>"
    )
    return send_email(db, to, f"Bienvenue sur {settings.DEFAULT_BRAND_NAME}", html)
