from datetime import datetime
from sqlalchemy import Column, String, Float, DateTime
from warehouse.database import Base
from warehouse.models.product import _uuid

class Expense(Base):
    __tablename__ = "expenses"

    id = Column(String, primary_key=True, default=_uuid)
    title = Column(String, nullable=False)
    amount = Column(Float, default=0)
    category = Column(String, default="")  # 家賃、光熱費など
    date = Column(DateTime, default=datetime.utcnow, index=True)
    note = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
