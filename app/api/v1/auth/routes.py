"""
Routes FastAPI pour l'authentification.

Endpoints pour :
- /auth/login, /auth/refresh, /auth/me : Session JWT
- /auth/register-tenant : Inscription publique d'un CFA
- /auth/impersonation : Connexion "en tant que" (super-admin)
"""
import redis
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.api.v1.auth.schemas import (
    AuthenticatedUser,
    ImpersonationResponse,
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
    RegisterTenantRequest,
    RegisterTenantResponse,
    TokenResponse,
)
from app.api.v1.auth.services import (
    AuthService,
    # Exceptions
    ImpersonationError,
    InactiveUserError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
)
from app.api.v1.platform.super_admin_security import get_current_super_admin
from app.api.v1.tenants.services import EmailAlreadyUsedError
from app.core.auth.user_auth import get_current_user
from app.core.tenant_context import get_impersonator_id
from app.database.session_rls import get_db_no_rls
from app.models.user.user import User

router = APIRouter(prefix="/auth", tags=["Authentification"])


def _client_ip(request: Request):
    return request.client.host if request.client else None


def _session_unavailable(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Service de session indisponible : {e}",
    )


# =============================================================================
# SESSION
# =============================================================================

@router.post("/login", response_model=LoginResponse)
def login(
        data: LoginRequest,
        request: Request,
        db: Session = Depends(get_db_no_rls),
):
    """Connexion email / mot de passe."""
    service = AuthService(db)
    try:
        user = service.authenticate_local(data.email, data.password, ip_address=_client_ip(request))
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    except InactiveUserError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return service.build_login_response(user)


@router.post("/refresh", response_model=TokenResponse)
def refresh_tokens(data: RefreshTokenRequest, db: Session = Depends(get_db_no_rls)):
    try:
        return AuthService(db).refresh(data.refresh_token)
    except InvalidRefreshTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


@router.get("/me", response_model=AuthenticatedUser)
def me(current_user: User = Depends(get_current_user)):
    return current_user


# =============================================================================
# INSCRIPTION
# =============================================================================

@router.post(
    "/register-tenant",
    response_model=RegisterTenantResponse,
    status_code=status.HTTP_201_CREATED,
)
def register_tenant(data: RegisterTenantRequest, db: Session = Depends(get_db_no_rls)):
    """Crée un CFA, son administrateur et un abonnement ESSENTIAL (public)."""
    try:
        tenant, admin = AuthService(db).register_tenant(
            data.cfa_name, data.admin_email, data.password, data.first_name, data.last_name,
        )
    except EmailAlreadyUsedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return RegisterTenantResponse(tenant_id=tenant.id, slug=tenant.slug, user_id=admin.id)


# =============================================================================
# IMPERSONATION
# =============================================================================

@router.post("/impersonation/{user_id}", response_model=ImpersonationResponse)
def start_impersonation(
        user_id: int,
        request: Request,
        db: Session = Depends(get_db_no_rls),
        admin: User = Depends(get_current_super_admin),
):
    """Émet un jeton au nom de l'utilisateur cible (super-admin)."""
    service = AuthService(db)
    try:
        token, session, target = service.start_impersonation(admin, user_id, ip_address=_client_ip(request))
    except ImpersonationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except redis.RedisError as e:
        raise _session_unavailable(e)

    return ImpersonationResponse(
        access_token=token,
        expires_at=session.expires_at,
        target_user=AuthenticatedUser.model_validate(target),
    )


@router.delete("/impersonation", status_code=status.HTTP_204_NO_CONTENT)
def stop_impersonation(
        request: Request,
        db: Session = Depends(get_db_no_rls),
        current_user: User = Depends(get_current_user),
):
    """
    Termine l'impersonation.

    Appelable avec le jeton du super-admin ou avec le jeton d'impersonation.
    """
    admin_id = current_user.id if current_user.is_super_admin else get_impersonator_id()
    if admin_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Aucune impersonation en cours")

    try:
        stopped = AuthService(db).stop_impersonation(admin_id, ip_address=_client_ip(request))
    except redis.RedisError as e:
        raise _session_unavailable(e)
    if not stopped:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Aucune impersonation en cours")
