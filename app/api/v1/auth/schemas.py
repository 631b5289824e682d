"""
Schémas Pydantic pour le module d'authentification.

Contient les schémas pour :
- Authentification locale (email/mot de passe)
- Tokens JWT
- Inscription d'un CFA
- Impersonation (super-admin)
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.enums import UserRole


# =============================================================================
# AUTHENTIFICATION LOCALE (EMAIL/MOT DE PASSE)
# =============================================================================

class LoginRequest(BaseModel):
    """Requête de connexion avec email/mot de passe."""
    email: EmailStr = Field(..., description="Email de connexion")
    password: str = Field(..., min_length=1, description="Mot de passe")


# =============================================================================
# TOKENS JWT
# =============================================================================

class TokenResponse(BaseModel):
    """Réponse contenant les tokens JWT."""
    access_token: str = Field(..., description="Token JWT d'accès")
    refresh_token: str = Field(..., description="Token JWT de refresh")
    token_type: str = Field(default="Bearer", description="Type de token")
    expires_in: int = Field(..., description="Durée de validité en secondes")


class RefreshTokenRequest(BaseModel):
    """Requête de renouvellement de token."""
    refresh_token: str = Field(..., description="Token de refresh")


# =============================================================================
# UTILISATEUR AUTHENTIFIÉ
# =============================================================================

class AuthenticatedUser(BaseModel):
    """Informations de l'utilisateur connecté."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole
    tenant_id: Optional[int] = None
    company_name: Optional[str] = None
    last_login: Optional[datetime] = None


class LoginResponse(BaseModel):
    """Réponse complète après connexion."""
    user: AuthenticatedUser
    tokens: TokenResponse


# =============================================================================
# INSCRIPTION D'UN CFA
# =============================================================================

class RegisterTenantRequest(BaseModel):
    """Inscription publique : un CFA et son premier administrateur."""
    cfa_name: str = Field(..., min_length=2, max_length=255)
    admin_email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class RegisterTenantResponse(BaseModel):
    success: bool = True
    tenant_id: int
    slug: str
    user_id: int


# =============================================================================
# IMPERSONATION
# =============================================================================

class ImpersonationResponse(BaseModel):
    """Jeton émis pour l'utilisateur impersonné."""
    access_token: str
    token_type: str = "Bearer"
    expires_at: datetime
    target_user: AuthenticatedUser
