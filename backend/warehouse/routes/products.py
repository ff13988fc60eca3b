from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from warehouse.config import LOW_STOCK_THRESHOLD
from warehouse.database import get_db
from warehouse.models.product import Category, Product
from warehouse.schemas import CategoryCreate, CategoryRead, ProductCreate, ProductRecord, ProductUpdate
from warehouse.services import accounting
from warehouse.services.inventory_service import InventoryService, ProductNotFoundError
from warehouse.services.ledger_service import LedgerService
from warehouse.utils.jwt_auth import get_current_user, require_admin

router = APIRouter(prefix="/api", tags=["products"])

def _get_product_or_404(db: Session, product_id: str) -> Product:
    try:
        return InventoryService.get_product(db, product_id)
    except ProductNotFoundError:
        raise HTTPException(status_code=404, detail="商品が見つかりません")

def _check_category(db: Session, category_id: Optional[str]):
    if category_id and not db.query(Category).filter(Category.id == category_id).first():
        raise HTTPException(status_code=400, detail="カテゴリが見つかりません")

# ---------- カテゴリ ----------

@router.get("/categories", response_model=List[CategoryRead])
def list_categories(current_user=Depends(get_current_user), db: Session = Depends(get_db)):
    """カテゴリ一覧（名前順）"""
    return db.query(Category).order_by(Category.name).all()

@router.post("/categories", response_model=CategoryRead, status_code=201)
def create_category(data: CategoryCreate, current_user=Depends(require_admin), db: Session = Depends(get_db)):
    name = data.name.strip()
    if db.query(Category).filter(Category.name == name).first():
        raise HTTPException(status_code=400, detail="このカテゴリは既に存在します")
    category = Category(name=name)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category

@router.delete("/categories/{category_id}")
def delete_category(category_id: str, current_user=Depends(require_admin), db: Session = Depends(get_db)):
    """カテゴリを削除（所属商品は未分類になる）"""
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="カテゴリが見つかりません")
    db.query(Product).filter(Product.category_id == category_id).update({Product.category_id: None})
    db.delete(category)
    db.commit()
    return {"success": True}

# ---------- 商品 ----------

@router.get("/products", response_model=List[ProductRecord])
def list_products(
    current_user=Depends(get_current_user),
    db: Session = Depends(get_db),
    category_id: str = None,
    in_stock: bool = False
):
    """商品一覧（名前順）。in_stock=true の場合は在庫ありのみ"""
    query = db.query(Product)
    if category_id:
        query = query.filter(Product.category_id == category_id)
    if in_stock:
        query = query.filter(Product.stock > 0)
    return query.order_by(Product.name).all()

@router.get("/products/low-stock", response_model=List[ProductRecord])
def list_low_stock(
    current_user=Depends(get_current_user),
    db: Session = Depends(get_db),
    threshold: int = Query(LOW_STOCK_THRESHOLD, ge=0)
):
    """在庫が閾値以下の商品（在庫の少ない順）"""
    return accounting.low_stock_products(LedgerService.load_products(db), threshold)

@router.get("/products/{product_id}", response_model=ProductRecord)
def get_product(product_id: str, current_user=Depends(get_current_user), db: Session = Depends(get_db)):
    return _get_product_or_404(db, product_id)

@router.post("/products", response_model=ProductRecord, status_code=201)
def create_product(data: ProductCreate, current_user=Depends(require_admin), db: Session = Depends(get_db)):
    """商品登録（初期在庫は仕入取引として記録）"""
    _check_category(db, data.category_id)
    return InventoryService.create_product(db, data, cashier=current_user)

@router.put("/products/{product_id}", response_model=ProductRecord)
def update_product(product_id: str, data: ProductUpdate, current_user=Depends(require_admin), db: Session = Depends(get_db)):
    """商品情報を更新（在庫数は取引でのみ変更）"""
    product = _get_product_or_404(db, product_id)
    changes = data.model_dump(exclude_unset=True)
    _check_category(db, changes.get("category_id"))
    for field, value in changes.items():
        if value is None and field != "category_id":
            continue
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product

@router.delete("/products/{product_id}")
def delete_product(product_id: str, current_user=Depends(require_admin), db: Session = Depends(get_db)):
    """商品を削除（取引履歴は残る）"""
    product = _get_product_or_404(db, product_id)
    db.delete(product)
    db.commit()
    return {"success": True}
