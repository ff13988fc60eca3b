"""
監査ログ

AuditLog テーブルへの書き込み。既定ではバックグラウンドスレッドで
独自セッションを使い、記録に失敗しても呼び出し元の処理は継続する。
"""

import threading
from datetime import datetime
from typing import Any, Dict, Optional
from starlette.requests import Request
from warehouse.config import AUDIT_LOG_ASYNC
from warehouse.utils.logger import get_logger
from warehouse.utils.rate_limiter import client_ip

logger = get_logger(__name__)


def _write(entry: Dict[str, Any], db=None):
    from warehouse.database import SessionLocal
    from warehouse.models.audit_log import AuditLog

    session = db if db is not None else SessionLocal()
    try:
        session.add(AuditLog(timestamp=datetime.utcnow(), **entry))
        session.commit()
        logger.debug("audit: %s - %s (%s)", entry["event_type"], entry.get("username"), entry.get("ip_address"))
    except Exception:
        session.rollback()
        logger.exception("audit log write failed for %s", entry["event_type"])
    finally:
        if db is None:
            session.close()


def log_event(
    event_type: str,
    ip_address: str,
    user_id: Optional[int] = None,
    username: Optional[str] = None,
    user_agent: Optional[str] = None,
    resource: Optional[str] = None,
    action: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    success: bool = False,
    status_code: Optional[int] = None,
    db=None,
    background: Optional[bool] = None,
):
    """監査ログを記録する。db を渡した場合はそのセッションで同期的に書き込む"""
    entry = {
        "event_type": event_type,
        "ip_address": ip_address,
        "user_id": user_id,
        "username": username,
        "user_agent": user_agent,
        "resource": resource,
        "action": action,
        "details": details or {},
        "success": success,
        "status_code": status_code,
    }

    if background is None:
        background = AUDIT_LOG_ASYNC
    if db is not None or not background:
        _write(entry, db)
        return

    threading.Thread(target=_write, args=(entry,), daemon=True).start()


def audit_request(
    request: Request,
    event_type: str,
    user=None,
    username: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    success: bool = True,
    status_code: int = 200,
):
    """リクエスト情報（IP・User-Agent・パス・メソッド）付きで監査ログを記録"""
    log_event(
        event_type=event_type,
        ip_address=client_ip(request),
        user_id=user.id if user is not None else None,
        username=user.username if user is not None else username,
        user_agent=request.headers.get("user-agent", "unknown"),
        resource=request.url.path,
        action=request.method,
        details=details,
        success=success,
        status_code=status_code,
    )
