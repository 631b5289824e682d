"""
Platform models - Administration de la plateforme Alternance360.

- Lead : Prospects (formulaire public)
- PlatformConfig : Paramètres globaux (SMTP, tarifs, marque)
- ArchiveVault : Coffre des contrats archivés
"""
from app.models.platform.archive_vault import ArchiveVault
from app.models.platform.lead import Lead
from app.models.platform.platform_config import PlatformConfig

__all__ = ["ArchiveVault", "Lead", "PlatformConfig"]
