from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from classroom_chat.config import settings
from classroom_chat.exceptions import AuthenticationError, ForbiddenError
from classroom_chat.utils.jwt import Identity, identity_from_payload, verify_token

security = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Identity:
    if credentials is None:
        raise AuthenticationError(detail="Missing bearer token")
    payload = verify_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError(detail="Could not validate credentials")
    if payload.get("type", "access") != "access":
        raise AuthenticationError(detail="Invalid token type")
    identity = identity_from_payload(payload)
    if identity is None:
        raise AuthenticationError(detail="Token carries no subject")
    return identity


async def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.has_role(settings.admin_group):
        raise ForbiddenError(detail=f"User {identity.user_id} is not in group {settings.admin_group}")
    return identity
