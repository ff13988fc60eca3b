from datetime import datetime
from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String
from warehouse.database import Base

class AuditLog(Base):
    """監査ログ（ログイン・ユーザー管理・販売・仕入・インポートなど）"""
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_event_time", "event_type", "timestamp"),
    )

    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    event_type = Column(String(64), nullable=False)
    user_id = Column(Integer, nullable=True)
    username = Column(String, nullable=True, index=True)
    ip_address = Column(String(64))
    user_agent = Column(String, nullable=True)
    resource = Column(String, nullable=True)   # リクエストパス
    action = Column(String(16), nullable=True)  # HTTPメソッド
    details = Column(JSON, default=dict)
    success = Column(Boolean, default=False, nullable=False)
    status_code = Column(Integer, nullable=True)
