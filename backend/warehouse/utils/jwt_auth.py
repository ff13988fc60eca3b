"""
JWT認証ユーティリティ

パスワードのハッシュ化、アクセストークンの発行・検証、
ロール別の認可依存関係（require_role / require_admin）を提供する。
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from warehouse.config import ACCESS_TOKEN_EXPIRE_HOURS, ALGORITHM, SECRET_KEY
from warehouse.database import get_db
from warehouse.models.user import User

# トークン無しでも 403 ではなく 401 を返すため auto_error=False
bearer_scheme = HTTPBearer(auto_error=False)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """ユーザーIDとロールを含むアクセストークンを発行"""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))
    claims = {"sub": str(user.id), "role": user.role, "exp": expire}
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="認証が必要です。再度ログインしてください",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_user_id(token: str) -> int:
    """トークンを検証してユーザーIDを返す（不正・期限切れは 401）"""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return int(payload["sub"])
    except (JWTError, KeyError, TypeError, ValueError):
        raise _unauthorized()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Bearer トークンのユーザーを返す。無効化されたユーザーは 401"""
    if credentials is None:
        raise _unauthorized()

    user = db.query(User).filter(User.id == decode_user_id(credentials.credentials)).first()
    if user is None or not user.is_active:
        raise _unauthorized()
    return user


def require_role(*roles: str):
    """指定ロールのいずれかを要求する依存関係を作る（それ以外は 403）"""
    def _dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="この操作を行う権限がありません",
            )
        return current_user
    return _dependency


require_admin = require_role("admin")
