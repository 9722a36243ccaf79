from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from app.auth.schemas import CurrentUser
from app.core.config import settings

# Token issuing lives outside this service; requests without a token act as the system.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth", auto_error=False)

SYSTEM_CREATOR = "System"
SYSTEM_ACTOR = "system"


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
) -> Optional[CurrentUser]:
    """Resolve the acting user from the access token, or None when no token was sent."""
    if not token:
        return None

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise credentials_exception

    user_id = payload.get("user_id") or payload.get("sub")
    if not user_id:
        raise credentials_exception

    return CurrentUser(id=str(user_id), name=payload.get("name"))


def recorded_by(current_user: Optional[CurrentUser], default: str = SYSTEM_ACTOR) -> str:
    return current_user.id if current_user else default
