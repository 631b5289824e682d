"""
Stockage des fichiers déposés (disque local).

Chemin logique retourné : /uploads/{dossier}/{uuid}{extension}
"""

import logging
import uuid
from pathlib import Path

from app.core.config import settings
from app.models.enums import ProofType

logger = logging.getLogger(__name__)


def proof_type_from_mime(content_type: str) -> ProofType:
    """Déduit le type de preuve du type MIME du fichier."""
    content_type = (content_type or "").lower()
    if content_type.startswith("image/"):
        return ProofType.IMG
    if content_type == "application/pdf":
        return ProofType.PDF
    return ProofType.TEXT


def save_upload(content: bytes, filename: str, folder: str = "proofs") -> str:
    """
    Écrit le fichier sous UPLOAD_DIR/{folder}/ avec un nom unique.

    Returns:
        URL relative du fichier (/uploads/{folder}/{uuid}{ext})
    """
    extension = Path(filename or "").suffix.lower()
    stored_name = f"{uuid.uuid4()}{extension}"

    target_dir = Path(settings.UPLOAD_DIR) / folder
    target_dir.mkdir(parents=True, exist_ok=True)
    (target_dir / stored_name).write_bytes(content)

    logger.info(f"📦 Fichier stocké : {folder}/{stored_name} ({len(content)} octets)")
    return f"/uploads/{folder}/{stored_name}"
