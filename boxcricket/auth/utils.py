"""
Authentication utilities - JWT token handling and caller dependency

Accounts live elsewhere; this service only needs to know who is calling.
The token subject is the caller's player reference, the same reference used
for umpire, host and roster entries.
"""
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from boxcricket.config import settings


# Security scheme for Bearer token
security = HTTPBearer()


def create_access_token(user_ref: str, expires_minutes: Optional[int] = None) -> str:
    """Create a JWT access token"""
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.utcnow() + timedelta(minutes=minutes)
    payload = {
        "sub": str(user_ref),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str, token_type: str = "access") -> Optional[str]:
    """Verify a JWT token and return the caller reference if valid"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        if payload.get("type") != token_type:
            return None
        return payload.get("sub")
    except JWTError:
        return None


def get_current_user_ref(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    FastAPI dependency to get the caller reference from the bearer token.
    Use this in route functions: caller_ref: str = Depends(get_current_user_ref)
    """
    user_ref = verify_token(credentials.credentials, "access")
    if user_ref is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_ref
