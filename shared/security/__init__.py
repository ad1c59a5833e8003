from .actor import Actor, normalize_role
from .jwt_handler import create_access_token, verify_access_token
from .dependencies import get_current_actor, require_roles
from .rate_limiter import limiter, user_id_or_ip

__all__ = [
    "Actor",
    "normalize_role",
    "create_access_token",
    "verify_access_token",
    "get_current_actor",
    "require_roles",
    "limiter",
    "user_id_or_ip"
]
