import uuid

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer

from .actor import Actor, ROLES
from .jwt_handler import verify_access_token

# Defines the expected header format (Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


async def get_current_actor(request: Request, token: str = Depends(oauth2_scheme)) -> Actor:
    """Dependency to validate the JWT and return the calling Actor (sub + role)."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    payload = verify_access_token(token)
    if payload is None:
        raise credentials_exception

    sub = payload.get("sub")
    role = payload.get("role")
    if sub is None or role is None:
        raise credentials_exception

    try:
        actor = Actor(id=uuid.UUID(str(sub)), role=role)
    except ValueError:
        raise credentials_exception

    if actor.role not in ROLES:
        raise credentials_exception

    # Store in request state for downstream use (like rate limiting)
    request.state.user_id = str(actor.id)
    return actor


def require_roles(*roles: str):
    """Route guard: the actor's normalised role must be one of `roles`."""

    async def _guard(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role for this endpoint",
            )
        return actor

    return _guard
