"""
Service d'authentification - Logique métier.

Ce module orchestre :
- L'authentification locale (email/mot de passe, bcrypt)
- La génération et le renouvellement des tokens JWT internes
- L'inscription publique d'un CFA
- L'impersonation d'un utilisateur par un super-admin (session Redis)

Chaque tentative de connexion est tracée dans le journal d'audit.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from jose import JWTError
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.audit.services import log_audit_event, log_login_attempt
from app.api.v1.auth.schemas import (
    AuthenticatedUser,
    LoginResponse,
    TokenResponse,
)
from app.api.v1.tenants.services import create_tenant_with_admin
from app.core.config import settings
from app.core.impersonation import ImpersonationManager, ImpersonationSession
from app.core.security.hashing import verify_password
from app.core.security.jwt import create_access_token, create_refresh_token, verify_token
from app.models.audit.audit_log import AuditAction
from app.models.tenants.tenant import Tenant
from app.models.user.user import User

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class AuthenticationError(Exception):
    """Erreur d'authentification de base."""
    pass


class InvalidCredentialsError(AuthenticationError):
    """Email ou mot de passe incorrect."""
    pass


class InactiveUserError(AuthenticationError):
    """Compte désactivé."""
    pass


class InvalidRefreshTokenError(AuthenticationError):
    """Refresh token invalide ou expiré."""
    pass


class ImpersonationError(Exception):
    """Impersonation impossible (cible inconnue ou super-admin)."""
    pass


# =============================================================================
# AUTH SERVICE
# =============================================================================

class AuthService:
    """
    Service d'authentification.

    Gère l'authentification email/mot de passe, les tokens et
    l'impersonation des utilisateurs par l'équipe plateforme.
    """

    def __init__(self, db: Session, impersonation: Optional[ImpersonationManager] = None):
        """
        Args:
            db: Session SQLAlchemy
            impersonation: Gestionnaire Redis (créé à la demande si absent)
        """
        self.db = db
        self._impersonation = impersonation

    @property
    def impersonation(self) -> ImpersonationManager:
        """Lazy loading du gestionnaire d'impersonation (Redis)."""
        if self._impersonation is None:
            self._impersonation = ImpersonationManager()
        return self._impersonation

    # =========================================================================
    # AUTHENTIFICATION LOCALE (EMAIL/MOT DE PASSE)
    # =========================================================================

    def authenticate_local(self, email: str, password: str, ip_address: Optional[str] = None) -> User:
        """
        Authentifie un utilisateur avec email/mot de passe.

        Raises:
            InvalidCredentialsError: Email inconnu, compte sans mot de passe
                (tuteur invité) ou mot de passe incorrect
            InactiveUserError: Compte désactivé
        """
        email = email.lower()
        user = self.db.execute(select(User).where(User.email == email)).scalar_one_or_none()

        if not user or not user.password_hash or not verify_password(password, user.password_hash):
            log_login_attempt(self.db, email, False, user=user, ip_address=ip_address, reason="invalid_credentials")
            self.db.commit()
            logger.warning(f"⚠️ Échec de connexion pour {email}")
            raise InvalidCredentialsError("Email ou mot de passe incorrect")

        if not user.is_active:
            log_login_attempt(self.db, email, False, user=user, ip_address=ip_address, reason="inactive")
            self.db.commit()
            raise InactiveUserError("Ce compte a été désactivé")

        user.last_login = datetime.now(timezone.utc)
        log_login_attempt(self.db, email, True, user=user, ip_address=ip_address)
        self.db.commit()
        logger.info(f"✅ Connexion de l'utilisateur {user.id}")
        return user

    # =========================================================================
    # GÉNÉRATION DE TOKENS JWT
    # =========================================================================

    def create_tokens_for_user(self, user: User) -> TokenResponse:
        """Génère le couple access / refresh pour un utilisateur authentifié."""
        access_token = create_access_token({
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "tenant_id": user.tenant_id,
        })
        refresh_token = create_refresh_token({"sub": str(user.id)})

        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="Bearer",
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )

    def refresh(self, refresh_token: str) -> TokenResponse:
        """
        Raises:
            InvalidRefreshTokenError: Jeton invalide, expiré ou utilisateur inactif
        """
        try:
            payload = verify_token(refresh_token, token_type="refresh")
            user_id = int(payload["sub"])
        except (JWTError, KeyError, ValueError) as e:
            raise InvalidRefreshTokenError(f"Refresh token invalide : {e}")

        user = self.db.get(User, user_id)
        if user is None or not user.is_active:
            raise InvalidRefreshTokenError("Utilisateur introuvable ou désactivé")
        return self.create_tokens_for_user(user)

    def build_login_response(self, user: User) -> LoginResponse:
        return LoginResponse(
            user=AuthenticatedUser.model_validate(user),
            tokens=self.create_tokens_for_user(user),
        )

    # =========================================================================
    # INSCRIPTION
    # =========================================================================

    def register_tenant(
            self,
            cfa_name: str,
            admin_email: str,
            password: str,
            first_name: str,
            last_name: str,
    ) -> Tuple[Tenant, User]:
        """
        Inscription publique d'un CFA.

        Raises:
            EmailAlreadyUsedError: Email déjà utilisé (voir tenants.services)
        """
        try:
            tenant, admin = create_tenant_with_admin(
                self.db, cfa_name, admin_email, password, first_name, last_name,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return tenant, admin

    # =========================================================================
    # IMPERSONATION
    # =========================================================================

    def start_impersonation(
            self,
            admin: User,
            target_user_id: int,
            ip_address: Optional[str] = None,
    ) -> Tuple[str, ImpersonationSession, User]:
        """
        Ouvre une session d'impersonation et émet un jeton pour la cible.

        Le jeton porte la claim impersonator_id et n'est accepté que tant
        que la session Redis existe.
        """
        target = self.db.get(User, target_user_id)
        if target is None:
            raise ImpersonationError("Utilisateur non trouvé")
        if target.is_super_admin:
            raise ImpersonationError("Impossible d'impersonner un super-admin")

        session = self.impersonation.start(admin.id, target.id, target.tenant_id)
        token = create_access_token(
            {
                "sub": str(target.id),
                "email": target.email,
                "role": target.role.value,
                "tenant_id": target.tenant_id,
                "impersonator_id": admin.id,
            },
            expires_delta=timedelta(seconds=settings.IMPERSONATION_TTL_SECONDS),
        )

        log_audit_event(
            self.db,
            AuditAction.IMPERSONATION_START,
            tenant_id=target.tenant_id,
            user_id=admin.id,
            entity_type="user",
            entity_id=target.id,
            details={"admin_id": admin.id},
            ip_address=ip_address,
        )
        self.db.commit()
        logger.info(f"🕵️ Super-admin {admin.id} impersonne l'utilisateur {target.id}")
        return token, session, target

    def stop_impersonation(self, admin_id: int, ip_address: Optional[str] = None) -> bool:
        """Termine la session. Retourne False si aucune session n'était ouverte."""
        session = self.impersonation.stop(admin_id)
        if session is None:
            return False

        log_audit_event(
            self.db,
            AuditAction.IMPERSONATION_STOP,
            tenant_id=session.target_tenant_id,
            user_id=admin_id,
            entity_type="user",
            entity_id=session.target_user_id,
            details={"admin_id": admin_id},
            ip_address=ip_address,
        )
        self.db.commit()
        logger.info(f"🕵️ Fin d'impersonation pour le super-admin {admin_id}")
        return True
