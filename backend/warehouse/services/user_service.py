import secrets
import string
from typing import Optional
from sqlalchemy.orm import Session
from warehouse.models.user import User
from warehouse.utils.jwt_auth import hash_password
from warehouse.utils.logger import get_logger

logger = get_logger(__name__)


def _random_password(length: int = 16) -> str:
    """英字と数字を必ず含むランダムパスワード"""
    alphabet = string.ascii_letters + string.digits
    while True:
        password = "".join(secrets.choice(alphabet) for _ in range(length))
        if any(c.isalpha() for c in password) and any(c.isdigit() for c in password):
            return password


def ensure_default_admin(db: Session) -> Optional[str]:
    """管理者が1人もいなければ admin アカウントを作成し、初期パスワードを返す"""
    if db.query(User).filter(User.role == "admin").first():
        return None

    password = _random_password()
    db.add(User(
        username="admin",
        password_hash=hash_password(password),
        full_name="Administrator",
        role="admin",
        is_active=True,
    ))
    db.commit()
    logger.warning("initial admin account created: username=admin password=%s (change it!)", password)
    return password
