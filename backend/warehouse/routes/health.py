from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from warehouse.config import VERSION
from warehouse.database import get_db

router = APIRouter(prefix="/api", tags=["health"])

@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """ヘルスチェック（DB接続を含む）"""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        database = "unavailable"
    return {"status": "ok", "version": VERSION, "database": database}
