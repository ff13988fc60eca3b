from datetime import date, datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from warehouse.database import get_db
from warehouse.models.expense import Expense
from warehouse.schemas import ExpenseCreate, ExpenseRecord
from warehouse.services import accounting
from warehouse.services.ledger_service import LedgerService
from warehouse.utils.jwt_auth import require_admin

router = APIRouter(prefix="/api/expenses", tags=["expenses"])

@router.get("", response_model=List[ExpenseRecord])
def list_expenses(
    current_user=Depends(require_admin),
    db: Session = Depends(get_db),
    start_date: date = None,
    end_date: date = None
):
    """経費一覧（新しい順）"""
    return accounting.filter_by_date_range(LedgerService.load_expenses(db), start_date, end_date)

@router.post("", response_model=ExpenseRecord, status_code=201)
def create_expense(data: ExpenseCreate, current_user=Depends(require_admin), db: Session = Depends(get_db)):
    values = data.model_dump()
    values["date"] = values["date"] or datetime.utcnow()
    expense = Expense(**values)
    db.add(expense)
    db.commit()
    db.refresh(expense)
    return expense

@router.delete("/{expense_id}")
def delete_expense(expense_id: str, current_user=Depends(require_admin), db: Session = Depends(get_db)):
    expense = db.query(Expense).filter(Expense.id == expense_id).first()
    if not expense:
        raise HTTPException(status_code=404, detail="経費が見つかりません")
    db.delete(expense)
    db.commit()
    return {"success": True}
