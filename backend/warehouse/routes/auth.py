from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session
from warehouse.database import get_db
from warehouse.models.user import User
from warehouse.utils.audit_logger import audit_request
from warehouse.utils.jwt_auth import (
    create_access_token,
    get_current_user,
    hash_password,
    require_admin,
    verify_password,
)
from warehouse.utils.rate_limiter import client_ip, login_limiter

router = APIRouter(prefix="/api/auth", tags=["auth"])

ROLES = ("admin", "cashier")


def _password_strength(password: str) -> str:
    if len(password) < 8:
        raise ValueError("パスワードは8文字以上にしてください")
    if not any(c.isdigit() for c in password) or not any(c.isalpha() for c in password):
        raise ValueError("パスワードには英字と数字をそれぞれ1文字以上含めてください")
    return password


def _known_role(role: Optional[str]) -> Optional[str]:
    if role is not None and role not in ROLES:
        raise ValueError(f"role must be one of {ROLES}")
    return role


# ---------- スキーマ ----------

class LoginRequest(BaseModel):
    username: str
    password: str

class PasswordChange(BaseModel):
    old_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, v):
        return _password_strength(v)

class UserCreate(BaseModel):
    username: str
    password: str
    full_name: str = ""
    email: Optional[str] = None
    role: str = "cashier"

    @field_validator("password")
    @classmethod
    def check_password(cls, v):
        return _password_strength(v)

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        return _known_role(v)

class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        return _known_role(v)

class UserRead(BaseModel):
    id: int
    username: str
    full_name: Optional[str] = ""
    email: Optional[str] = None
    role: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def _get_user_or_404(db: Session, username: str) -> User:
    user = db.query(User).filter(User.username == username).first()
    if user is None:
        raise HTTPException(status_code=404, detail="ユーザーが見つかりません")
    return user


# ---------- ログイン ----------

@router.post("/login")
def login(request: Request, data: LoginRequest, db: Session = Depends(get_db)):
    """ログインしてアクセストークンを発行（IP単位で試行回数を制限）"""
    ip_address = client_ip(request)
    if not login_limiter.is_allowed(ip_address):
        audit_request(request, "login_rate_limit_exceeded", username=data.username, success=False, status_code=429)
        raise HTTPException(
            status_code=429,
            detail=f"ログイン試行回数が多すぎます。{login_limiter.get_remaining_time(ip_address)}秒後に再度お試しください"
        )

    user = db.query(User).filter(User.username == data.username).first()
    if user is None or not verify_password(data.password, user.password_hash):
        audit_request(request, "login_failure", username=data.username, success=False, status_code=401,
                      details={"reason": "invalid_credentials"})
        raise HTTPException(status_code=401, detail="ユーザー名またはパスワードが正しくありません")

    if not user.is_active:
        audit_request(request, "login_failure", user=user, success=False, status_code=403,
                      details={"reason": "user_inactive"})
        raise HTTPException(status_code=403, detail="このユーザーはアクティブではありません")

    audit_request(request, "login_success", user=user)
    return {
        "success": True,
        "access_token": create_access_token(user),
        "token_type": "bearer",
        "user": UserRead.model_validate(user),
    }

@router.post("/logout")
def logout():
    """トークンはクライアント側で破棄する"""
    return {"success": True}

@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    return current_user

@router.post("/change-password")
def change_password(request: Request, data: PasswordChange, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not verify_password(data.old_password, current_user.password_hash):
        raise HTTPException(status_code=401, detail="現在のパスワードが正しくありません")

    current_user.password_hash = hash_password(data.new_password)
    current_user.updated_at = datetime.utcnow()
    db.commit()
    audit_request(request, "password_changed", user=current_user)
    return {"success": True}

# ---------- ユーザー管理（管理者） ----------

@router.get("/admin/users", response_model=List[UserRead])
def list_users(current_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    return db.query(User).order_by(User.created_at).all()

@router.post("/admin/users", response_model=UserRead, status_code=201)
def create_user(request: Request, data: UserCreate, current_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """販売担当者・管理者アカウントを作成"""
    if db.query(User).filter(User.username == data.username).first():
        raise HTTPException(status_code=400, detail="このユーザー名は既に存在します")

    user = User(
        username=data.username,
        password_hash=hash_password(data.password),
        full_name=data.full_name,
        email=data.email,
        role=data.role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    audit_request(request, "user_created", user=current_user, status_code=201,
                  details={"created_user": user.username, "role": user.role})
    return user

@router.put("/admin/users/{username}", response_model=UserRead)
def update_user(request: Request, username: str, data: UserUpdate, current_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """指定された項目のみ更新。自分自身の降格・無効化は不可"""
    user = _get_user_or_404(db, username)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    demotes_self = user.id == current_user.id and (
        changes.get("role", "admin") != "admin" or changes.get("is_active") is False
    )
    if demotes_self:
        raise HTTPException(status_code=400, detail="自分自身の権限は変更できません")

    diff = {field: {"old": getattr(user, field), "new": value} for field, value in changes.items()}
    for field, value in changes.items():
        setattr(user, field, value)
    if diff:
        user.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(user)

    audit_request(request, "user_updated", user=current_user, details={"target_user": username, **diff})
    return user

@router.delete("/admin/users/{username}")
def delete_user(request: Request, username: str, current_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    user = _get_user_or_404(db, username)
    if user.id == current_user.id:
        audit_request(request, "user_delete_failure", user=current_user, success=False, status_code=400,
                      details={"reason": "self_delete_attempt"})
        raise HTTPException(status_code=400, detail="自分自身は削除できません")

    role = user.role
    db.delete(user)
    db.commit()

    audit_request(request, "user_deleted", user=current_user, details={"deleted_user": username, "role": role})
    return {"success": True}
