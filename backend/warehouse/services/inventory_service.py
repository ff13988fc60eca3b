from datetime import datetime
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from warehouse.models.product import Product
from warehouse.models.transaction import Transaction
from warehouse.schemas import ProductCreate
from warehouse.utils.currency import format_currency
from warehouse.utils.logger import get_logger

logger = get_logger(__name__)

INITIAL_STOCK_NOTE = "Initial stock"
RESTOCK_NOTE = "Stock refill"


class ProductNotFoundError(LookupError):
    def __init__(self, product_id: str):
        super().__init__(f"product not found: {product_id}")
        self.product_id = product_id


class InsufficientStockError(ValueError):
    def __init__(self, product: Product, requested: int):
        super().__init__(
            f"insufficient stock for {product.name}: requested {requested}, available {product.stock}"
        )
        self.product_id = product.id
        self.available = product.stock
        self.requested = requested
        self.unit = product.unit


def _check_quantity(quantity: int):
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValueError(f"quantity must be a positive integer, got {quantity!r}")


def _cashier_fields(cashier) -> dict:
    """取引に記録する担当者情報（管理者の場合は空欄）"""
    if cashier is None or cashier.is_admin:
        return {"cashier_id": None, "cashier_name": None}
    return {"cashier_id": str(cashier.id), "cashier_name": cashier.display_name}


class InventoryService:
    """在庫移動と取引記録"""

    @staticmethod
    def get_product(db: Session, product_id: str) -> Product:
        product = db.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    @staticmethod
    def create_product(db: Session, data: ProductCreate, cashier=None) -> Product:
        """商品を登録し、初期在庫があれば仕入取引も記録"""
        product = Product(**data.model_dump())
        db.add(product)
        db.flush()

        if product.stock > 0:
            db.add(Transaction(
                type="purchase",
                product_id=product.id,
                product_name=product.name,
                quantity=product.stock,
                unit_price=product.cost_price,
                total_price=product.cost_price * product.stock,
                date=datetime.utcnow(),
                note=INITIAL_STOCK_NOTE,
                **_cashier_fields(cashier)
            ))

        db.commit()
        db.refresh(product)
        logger.info("product created: %s (stock=%s)", product.name, product.stock)
        return product

    @staticmethod
    def adjust_stock(db: Session, product_id: str, delta: int) -> Product:
        """
        在庫数を増減する（コミットは呼び出し側）

        条件付き UPDATE 1 文で更新するため、同時に販売されても在庫はマイナスにならない。
        減らす数が在庫より多い場合は InsufficientStockError（何も変更しない）。
        """
        product = InventoryService.get_product(db, product_id)
        current = func.coalesce(Product.stock, 0)
        query = db.query(Product).filter(Product.id == product_id)
        if delta < 0:
            query = query.filter(current >= -delta)
        updated = query.update({Product.stock: current + delta}, synchronize_session=False)

        db.refresh(product)
        if not updated:
            raise InsufficientStockError(product, -delta)
        return product

    @staticmethod
    def record_sale(
        db: Session,
        product_id: str,
        quantity: int,
        unit_price: Optional[float] = None,
        cashier=None,
        note: Optional[str] = None,
    ) -> Transaction:
        """販売を記録して在庫を減らす。在庫不足の場合は何も変更しない"""
        _check_quantity(quantity)
        product = InventoryService.adjust_stock(db, product_id, -quantity)
        price = product.price if unit_price is None else unit_price
        tx = Transaction(
            type="sale",
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            unit_price=price,
            total_price=price * quantity,
            date=datetime.utcnow(),
            note=note,
            **_cashier_fields(cashier)
        )
        db.add(tx)
        db.commit()
        db.refresh(tx)
        logger.info("sale: %s x%s = %s (stock left %s)", product.name, quantity, format_currency(tx.total_price), product.stock)
        return tx

    @staticmethod
    def record_purchase(
        db: Session,
        product_id: str,
        quantity: int,
        unit_price: float,
        cashier=None,
        note: Optional[str] = None,
    ) -> Transaction:
        """仕入（在庫補充）を記録して在庫を増やす"""
        _check_quantity(quantity)
        product = InventoryService.adjust_stock(db, product_id, quantity)
        tx = Transaction(
            type="purchase",
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            unit_price=unit_price,
            total_price=unit_price * quantity,
            date=datetime.utcnow(),
            note=note or RESTOCK_NOTE,
            **_cashier_fields(cashier)
        )
        db.add(tx)
        db.commit()
        db.refresh(tx)
        logger.info("purchase: %s x%s = %s (stock now %s)", product.name, quantity, format_currency(tx.total_price), product.stock)
        return tx

    @staticmethod
    def merge_duplicate_products(db: Session) -> int:
        """
        同名商品（前後空白・大文字小文字を無視）を1件にまとめる

        カテゴリ付きの商品を優先して残し、在庫数は合算する。
        戻り値はまとめたグループ数。
        """
        groups = {}
        for product in db.query(Product).order_by(Product.created_at).all():
            key = product.name.strip().lower()
            groups.setdefault(key, []).append(product)

        merged = 0
        for group in groups.values():
            if len(group) < 2:
                continue
            ordered = sorted(group, key=lambda p: 0 if p.category_id else 1)
            canonical, duplicates = ordered[0], ordered[1:]
            canonical.stock = sum(p.stock or 0 for p in group)
            for dup in duplicates:
                db.delete(dup)
            merged += 1
            logger.info("merged %d duplicates into %s", len(duplicates), canonical.name)

        db.commit()
        return merged
