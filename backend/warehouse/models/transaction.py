from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, DateTime
from warehouse.database import Base
from warehouse.models.product import _uuid

class Transaction(Base):
    """仕入・販売の取引履歴"""
    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=_uuid)
    type = Column(String, index=True, nullable=False)  # 'purchase' または 'sale'
    # 商品削除後も履歴を残すため外部キーにはしない
    product_id = Column(String, index=True)
    product_name = Column(String)  # 取引時点の商品名
    quantity = Column(Integer, default=1)
    unit_price = Column(Float)
    total_price = Column(Float)
    date = Column(DateTime, default=datetime.utcnow, index=True)
    note = Column(String, nullable=True)
    cashier_id = Column(String, nullable=True)  # 未設定の場合は管理者の取引
    cashier_name = Column(String, nullable=True)

    def __repr__(self):
        return f"<Transaction {self.type} {self.product_name} x{self.quantity}>"
