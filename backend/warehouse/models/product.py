import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from warehouse.config import DEFAULT_UNIT
from warehouse.database import Base

def _uuid() -> str:
    return str(uuid.uuid4())

class Category(Base):
    __tablename__ = "categories"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    products = relationship("Product", back_populates="category")

    def __repr__(self):
        return f"<Category {self.name}>"

class Product(Base):
    __tablename__ = "products"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, index=True, nullable=False)
    description = Column(String, default="")
    # カテゴリ削除時は未分類に戻す
    category_id = Column(String, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    price = Column(Float, default=0)  # 販売価格
    cost_price = Column(Float, default=0)  # 仕入原価（現在値）
    stock = Column(Integer, default=0)
    unit = Column(String, default=DEFAULT_UNIT)
    created_at = Column(DateTime, default=datetime.utcnow)

    category = relationship("Category", back_populates="products")

    def __repr__(self):
        return f"<Product {self.name}: stock={self.stock}>"
