"""
Request actor resolution

Core services never look at headers or cookies; routers resolve the bearer
token into an explicit Actor once and pass it down.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from jose import jwt as jose_jwt

from .config import JWT_ALGORITHM, SECRET_KEY

logger = logging.getLogger(__name__)

security = HTTPBearer()

ROLES = ("customer", "chef", "delivery", "admin")


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation"""

    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def create_access_token(user_id: int, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT for an actor

    Args:
        user_id: Subject user id
        role: One of ROLES
        expires_delta: Token lifetime (default 12 hours)
    """
    expire = datetime.utcnow() + (expires_delta or timedelta(hours=12))
    to_encode = {"sub": str(user_id), "role": role, "exp": expire}
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """Decode the bearer token into an Actor"""
    try:
        payload = jose_jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid token") from e

    role = payload.get("role")
    sub = payload.get("sub")
    if role not in ROLES or not sub:
        logger.warning(f"⚠️ Token with invalid claims: role={role}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    try:
        return Actor(user_id=int(sub), role=role)
    except ValueError as e:
        raise HTTPException(status_code=401, detail="Invalid token claims") from e


def require_roles(*roles: str):
    """Dependency factory restricting an endpoint to the given roles"""

    async def _dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            logger.warning(f"⚠️ User {actor.user_id} ({actor.role}) denied; requires {roles}")
            raise HTTPException(
                status_code=403, detail=f"Unauthorized. {' or '.join(roles)} access required."
            )
        return actor

    return _dependency
