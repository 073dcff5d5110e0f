from jose import jwt
from config import settings
from datetime import datetime, timedelta
from typing import Optional
from api.auth.schemas import UserResponseSchema
from fastapi import HTTPException, status, Depends

from fastapi.security import OAuth2PasswordBearer

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)

def create_access_token(user_id: int, email: str, is_admin: bool):
    expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = {
        "sub": email,
        "id": user_id,
        "role": "admin" if is_admin else "user",
        "exp": expire
    }

    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def decode_access_token(token: str) -> UserResponseSchema:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")

    email: str = payload.get("sub")
    user_id: int = payload.get("id")
    role: str = payload.get("role")

    if email is None or user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")

    return UserResponseSchema(id=user_id, email=email, is_admin=(role == "admin"))

def get_current_user(token: str = Depends(oauth2_scheme)):
    """
    Extract and validate the token using oauth2_scheme.
    """
    return decode_access_token(token)

def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme)) -> Optional[UserResponseSchema]:
    """
    Same as get_current_user, but anonymous requests get None instead of a 401.
    """
    if not token:
        return None
    return decode_access_token(token)

def is_admin(current_user: UserResponseSchema = Depends(get_current_user)):
    """
    Dependency to check if the current user is an admin.
    """
    if current_user.is_admin is False:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this resource. Only admins can access.",
        )
    return current_user
