from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from warehouse.database import Base

class User(Base):
    """ログインユーザー（管理者 / 販売担当者）"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, default="")
    email = Column(String, nullable=True)
    role = Column(String(16), default="cashier", nullable=False)  # 'admin' | 'cashier'
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def display_name(self) -> str:
        """取引の担当者名として記録する名前"""
        return self.full_name or self.username
