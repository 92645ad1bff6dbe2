from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer

from vehiscan.context import AppContext
from vehiscan.core.security import decode_access_token
from vehiscan.db.models import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_current_user(
    token: str = Depends(oauth2_scheme),
    ctx: AppContext = Depends(get_context),
) -> User:
    user_id = decode_access_token(token, ctx.settings.SECRET_KEY)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")

    user = ctx.auth.get_user(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Admin rights required")
    return current_user
