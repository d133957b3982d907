from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer

from foodlink.core.config import settings
from foodlink.deps import get_store

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def create_token(sub: str, minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": sub, "iat": now, "exp": now + timedelta(minutes=minutes or settings.access_ttl_min)}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), store=Depends(get_store)):
    if not token:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    data = decode_token(token)
    user = await store.users.get(data.get("sub"))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if (settings.require_verification and user.get("role") != "admin"
            and user.get("verification_status") != "approved"):
        raise HTTPException(status_code=403,
                            detail="Your account is pending verification. Please wait for admin approval.")
    return user


def require_roles(*roles: str):
    async def checker(user=Depends(get_current_user)):
        if user.get("role") not in roles:
            raise HTTPException(status_code=403, detail=f"Only {', '.join(roles)} accounts can do this")
        return user
    return checker
