from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Session
from warehouse.database import get_db
from warehouse.models.audit_log import AuditLog
from warehouse.utils.jwt_auth import require_admin

router = APIRouter(prefix="/api/admin", tags=["audit"])

class AuditLogRead(BaseModel):
    id: int
    timestamp: datetime
    event_type: str
    user_id: Optional[int] = None
    username: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    resource: Optional[str] = None
    action: Optional[str] = None
    success: bool
    status_code: Optional[int] = None
    details: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True

class AuditLogPage(BaseModel):
    logs: List[AuditLogRead]
    total: int
    days: int

def _since(days: int) -> datetime:
    return datetime.utcnow() - timedelta(days=days)

@router.get("/security-logs", response_model=AuditLogPage)
def get_security_logs(
    current_user=Depends(require_admin),
    db: Session = Depends(get_db),
    event_type: Optional[str] = None,
    username: Optional[str] = None,
    success: Optional[bool] = None,
    days: int = Query(7, ge=1, le=90),
    limit: int = Query(500, ge=1, le=1000)
):
    """監査ログ（新しい順）。販売・仕入・インポート・ログインなど"""
    query = db.query(AuditLog).filter(AuditLog.timestamp >= _since(days))
    if event_type:
        query = query.filter(AuditLog.event_type == event_type)
    if username:
        query = query.filter(AuditLog.username == username)
    if success is not None:
        query = query.filter(AuditLog.success == success)

    logs = query.order_by(AuditLog.timestamp.desc()).limit(limit).all()
    return AuditLogPage(logs=[AuditLogRead.model_validate(log) for log in logs], total=len(logs), days=days)

@router.get("/security-stats")
def get_security_stats(
    current_user=Depends(require_admin),
    db: Session = Depends(get_db),
    days: int = Query(7, ge=1, le=90)
):
    """イベント種別ごとの件数"""
    counts = (
        db.query(AuditLog.event_type, func.count(AuditLog.id))
        .filter(AuditLog.timestamp >= _since(days))
        .group_by(AuditLog.event_type)
        .all()
    )
    return {"stats": dict(counts), "days": days}
