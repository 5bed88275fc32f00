from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from classroom_chat.config import settings

ACCESS_TOKEN_EXPIRE_MINUTES = 60


class Identity(BaseModel):
    """Caller identity as asserted by the identity provider's token."""
    user_id: str
    roles: List[str] = []

    def has_role(self, role: str) -> bool:
        return role in self.roles


# Create JWT access token
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "type": "access"})
    if settings.jwt_audience:
        to_encode.setdefault("aud", settings.jwt_audience)
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


# Verify and decode JWT token
def verify_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"verify_aud": settings.jwt_audience is not None},
        )
    except JWTError:
        return None


def identity_from_payload(payload: Dict[str, Any]) -> Optional[Identity]:
    user_id = payload.get("sub")
    if not user_id:
        return None
    # Cognito style group claims, or a plain roles list
    roles = payload.get("cognito:groups") or payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return Identity(user_id=str(user_id), roles=list(roles))
