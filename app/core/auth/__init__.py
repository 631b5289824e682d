from app.core.auth.user_auth import get_current_user, bearer_scheme
from app.core.auth.api_key_auth import get_api_key_tenant
from app.core.auth.cron_auth import verify_cron_secret

__all__ = ["get_current_user", "bearer_scheme", "get_api_key_tenant", "verify_cron_secret"]
