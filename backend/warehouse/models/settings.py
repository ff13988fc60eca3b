from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from warehouse.config import DEFAULT_CURRENCY
from warehouse.database import Base

class CompanySettings(Base):
    """会社設定（id=1 の1行のみ）"""
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, default=1)
    company_name = Column(String, default="")
    currency = Column(String, default=DEFAULT_CURRENCY)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    iban = Column(String, nullable=True)
    address = Column(String, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
