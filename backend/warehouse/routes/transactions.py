from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import List, Literal
from warehouse.database import get_db
from warehouse.schemas import PurchaseCreate, SaleCreate, TransactionRecord
from warehouse.services.inventory_service import InsufficientStockError, InventoryService, ProductNotFoundError
from warehouse.services.ledger_service import LedgerService
from warehouse.utils.audit_logger import audit_request
from warehouse.utils.jwt_auth import get_current_user, require_admin

router = APIRouter(prefix="/api/transactions", tags=["transactions"])

def _details(record: TransactionRecord) -> dict:
    return {"product_id": record.product_id, "quantity": record.quantity, "total_price": record.total_price}

@router.get("", response_model=List[TransactionRecord])
def list_transactions(
    current_user=Depends(get_current_user),
    db: Session = Depends(get_db),
    type: Literal["all", "purchase", "sale"] = "all",
    start_date: date = None,
    end_date: date = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(500, ge=1, le=5000)
):
    """取引履歴（新しい順）"""
    return LedgerService.query_transactions(db, type, start_date, end_date, skip, limit)

@router.post("/sale", response_model=TransactionRecord, status_code=201)
def record_sale(request: Request, data: SaleCreate, current_user=Depends(get_current_user), db: Session = Depends(get_db)):
    """販売を記録（在庫を減らす）。販売担当者も実行できる"""
    try:
        tx = InventoryService.record_sale(
            db, data.product_id, data.quantity, data.unit_price, cashier=current_user, note=data.note
        )
    except ProductNotFoundError:
        raise HTTPException(status_code=404, detail="商品が見つかりません")
    except InsufficientStockError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"在庫は {e.available} {e.unit} しかありません")

    record = TransactionRecord.model_validate(tx)
    audit_request(request, "sale_recorded", user=current_user, status_code=201, details=_details(record))
    return record

@router.post("/purchase", response_model=TransactionRecord, status_code=201)
def record_purchase(request: Request, data: PurchaseCreate, current_user=Depends(require_admin), db: Session = Depends(get_db)):
    """仕入（在庫補充）を記録"""
    try:
        tx = InventoryService.record_purchase(
            db, data.product_id, data.quantity, data.unit_price, cashier=current_user, note=data.note
        )
    except ProductNotFoundError:
        raise HTTPException(status_code=404, detail="商品が見つかりません")

    record = TransactionRecord.model_validate(tx)
    audit_request(request, "purchase_recorded", user=current_user, status_code=201, details=_details(record))
    return record
