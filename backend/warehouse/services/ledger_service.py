from datetime import date, datetime, time
from typing import List, Optional
from sqlalchemy.orm import Session
from warehouse.models.expense import Expense
from warehouse.models.product import Product
from warehouse.models.settings import CompanySettings
from warehouse.models.transaction import Transaction
from warehouse.schemas import ExpenseRecord, ProductRecord, SettingsRead, TransactionRecord


class LedgerService:
    """DB から集計用レコードを読み込む"""

    @staticmethod
    def load_transactions(db: Session) -> List[TransactionRecord]:
        """取引一覧（新しい順）"""
        rows = db.query(Transaction).order_by(Transaction.date.desc()).all()
        return [TransactionRecord.model_validate(t) for t in rows]

    @staticmethod
    def query_transactions(
        db: Session,
        tx_type: str = "all",
        start: Optional[date] = None,
        end: Optional[date] = None,
        skip: int = 0,
        limit: int = 500,
    ) -> List[TransactionRecord]:
        """種別・期間で絞り込んだ取引のページ（新しい順）。絞り込みとページングは SQL 側で行う"""
        query = db.query(Transaction)
        if tx_type != "all":
            query = query.filter(Transaction.type == tx_type)
        if start:
            query = query.filter(Transaction.date >= datetime.combine(start, time.min))
        if end:
            query = query.filter(Transaction.date <= datetime.combine(end, time.max))

        rows = query.order_by(Transaction.date.desc(), Transaction.id).offset(skip).limit(limit).all()
        return [TransactionRecord.model_validate(t) for t in rows]

    @staticmethod
    def load_products(db: Session) -> List[ProductRecord]:
        rows = db.query(Product).order_by(Product.name).all()
        return [ProductRecord.model_validate(p) for p in rows]

    @staticmethod
    def load_expenses(db: Session) -> List[ExpenseRecord]:
        rows = db.query(Expense).order_by(Expense.date.desc()).all()
        return [ExpenseRecord.model_validate(e) for e in rows]

    @staticmethod
    def get_settings(db: Session) -> CompanySettings:
        """会社設定を取得（無ければ既定値で作成）"""
        settings = db.query(CompanySettings).filter(CompanySettings.id == 1).first()
        if settings is None:
            settings = CompanySettings(id=1)
            db.add(settings)
            db.commit()
            db.refresh(settings)
        return settings

    @staticmethod
    def get_settings_record(db: Session) -> SettingsRead:
        return SettingsRead.model_validate(LedgerService.get_settings(db))
