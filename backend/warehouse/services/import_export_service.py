import pandas as pd
from io import BytesIO, StringIO
from datetime import datetime
from typing import Dict, List, Optional, Sequence
import chardet
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session
from warehouse.config import DEFAULT_UNIT
from warehouse.models.product import Category, Product
from warehouse.models.transaction import Transaction
from warehouse.schemas import ProductCreate, ProductRecord, SettingsRead, Totals, TransactionRecord, TransactionType
from warehouse.services.inventory_service import InventoryService
from warehouse.utils.logger import get_logger

logger = get_logger(__name__)


class ImportFormatError(ValueError):
    """インポートファイルの形式エラー"""


# 英語・ジョージア語どちらのヘッダーにも対応（先頭が優先）
PRODUCT_COLUMN_ALIASES = {
    'name': ['Name', 'სახელი'],
    'category': ['Category', 'კატეგორია'],
    'cost_price': ['CostPrice', 'შესყიდვის ფასი', 'თვითღირებულება'],
    'price': ['Price', 'გაყიდვის ფასი', 'ფასი'],
    'stock': ['Stock', 'რაოდენობა', 'ნაშთი'],
    'description': ['Description', 'აღწერა'],
    'unit': ['Unit', 'ერთეული'],
}

EXCEL_EXTENSIONS = ('.xlsx', '.xls')
FALLBACK_ENCODINGS = ['utf-8', 'cp1252', 'latin-1']

TYPE_LABELS = {'purchase': 'შესყიდვა', 'sale': 'გაყიდვა'}
EXPORT_COLUMNS = ['ტიპი', 'პროდუქტი', 'რაოდენობა', 'ერთეულის ფასი', 'ჯამი', 'თარიღი', 'შენიშვნა']


class BackupProduct(BaseModel):
    name: str
    description: Optional[str] = ""
    price: float = 0
    cost_price: float = Field(default=0, alias="costPrice")
    stock: int = 0
    unit: Optional[str] = DEFAULT_UNIT

    class Config:
        populate_by_name = True
        extra = "ignore"


class BackupTransaction(BaseModel):
    type: TransactionType
    product_name: str = Field(alias="productName")
    quantity: int
    unit_price: float = Field(alias="unitPrice")
    total_price: float = Field(alias="totalPrice")
    date: datetime
    note: Optional[str] = None
    cashier_id: Optional[str] = Field(default=None, alias="cashierId")
    cashier_name: Optional[str] = Field(default=None, alias="cashierName")

    class Config:
        populate_by_name = True
        extra = "ignore"


class ImportExportService:
    """Excel / CSV / JSON のインポート・エクスポート"""

    @staticmethod
    def detect_encoding(file_bytes: bytes) -> str:
        result = chardet.detect(file_bytes)
        encoding = result.get('encoding') or 'utf-8'
        return encoding.lower()

    @staticmethod
    def decode(file_bytes: bytes) -> str:
        """エンコーディングを自動検出してデコード（失敗時はフォールバック）"""
        detected = ImportExportService.detect_encoding(file_bytes)
        for enc in [detected] + FALLBACK_ENCODINGS:
            try:
                return file_bytes.decode(enc)
            except (UnicodeDecodeError, LookupError):
                logger.debug("decode with %s failed", enc)
                continue
        raise ImportFormatError("サポートされているエンコーディングでファイルをデコードできません")

    @staticmethod
    def read_table(file_bytes: bytes, filename: str) -> pd.DataFrame:
        """Excel（拡張子で判定）または CSV を DataFrame として読み込む"""
        if not file_bytes:
            raise ImportFormatError("ファイルが空です")
        try:
            if filename.lower().endswith(EXCEL_EXTENSIONS):
                df = pd.read_excel(BytesIO(file_bytes))
            else:
                df = pd.read_csv(StringIO(ImportExportService.decode(file_bytes)))
        except ImportFormatError:
            raise
        except Exception as e:
            raise ImportFormatError(f"ファイル解析失敗: {e}") from e

        logger.info("import file %s: %d rows, columns=%s", filename, len(df), df.columns.tolist()[:10])
        return df

    @staticmethod
    def _pick(row: pd.Series, field: str):
        """エイリアスの中で最初に値がある列の値（空・0 は未入力扱い）"""
        for column in PRODUCT_COLUMN_ALIASES[field]:
            if column in row.index:
                value = row[column]
                if pd.notna(value) and value != "" and value != 0:
                    return value
        return None

    @staticmethod
    def parse_product_rows(df: pd.DataFrame) -> List[Dict]:
        """
        商品シートの行を商品データに変換

        名前・販売価格・仕入原価のいずれかが無い行はスキップする。
        戻り値の各要素は {'product': ProductCreate, 'category': str | None}。
        """
        rows = []
        for idx, row in df.iterrows():
            name = ImportExportService._pick(row, 'name')
            price = ImportExportService._pick(row, 'price')
            cost_price = ImportExportService._pick(row, 'cost_price')
            if name is None or price is None or cost_price is None:
                logger.warning("row %d skipped: name/price/cost price missing", idx + 2)
                continue

            stock = ImportExportService._pick(row, 'stock') or 0
            description = ImportExportService._pick(row, 'description') or ""
            unit = ImportExportService._pick(row, 'unit') or DEFAULT_UNIT
            category = ImportExportService._pick(row, 'category')

            try:
                product = ProductCreate(
                    name=str(name).strip(),
                    description=str(description),
                    price=float(price),
                    cost_price=float(cost_price),
                    stock=int(stock),
                    unit=str(unit),
                )
            except (ValueError, ValidationError) as e:
                logger.warning("row %d skipped: %s", idx + 2, e)
                continue

            rows.append({
                'product': product,
                'category': str(category).strip() if category is not None else None,
            })
        return rows

    @staticmethod
    def _get_or_create_category(db: Session, name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        category = db.query(Category).filter(Category.name == name).first()
        if category is None:
            category = Category(name=name)
            db.add(category)
            db.flush()
        return category.id

    @staticmethod
    def import_products(db: Session, file_bytes: bytes, filename: str, cashier=None) -> int:
        """商品シートを取り込み、登録件数を返す"""
        df = ImportExportService.read_table(file_bytes, filename)
        if df.empty:
            raise ImportFormatError("ファイルが空です")

        count = 0
        for row in ImportExportService.parse_product_rows(df):
            product = row['product']
            product.category_id = ImportExportService._get_or_create_category(db, row['category'])
            InventoryService.create_product(db, product, cashier=cashier)
            count += 1

        logger.info("imported %d products from %s", count, filename)
        return count

    @staticmethod
    def _to_xlsx(df: pd.DataFrame, sheet_name: str) -> bytes:
        buffer = BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name=sheet_name)
        return buffer.getvalue()

    @staticmethod
    def build_import_template() -> bytes:
        """商品インポート用のテンプレート（サンプル1行）"""
        df = pd.DataFrame([{
            'სახელი': 'მაგალითი პროდუქტი',
            'კატეგორია': 'ზოგადი',
            'შესყიდვის ფასი': 70,
            'გაყიდვის ფასი': 100,
            'რაოდენობა': 10,
        }])
        return ImportExportService._to_xlsx(df, 'Template')

    @staticmethod
    def export_transactions_xlsx(transactions: Sequence[TransactionRecord], totals: Totals) -> bytes:
        """取引一覧と合計行（仕入合計・売上合計・損益）を Excel に出力"""
        rows = [
            [
                TYPE_LABELS.get(t.type, t.type),
                t.product_name,
                t.quantity,
                t.unit_price,
                t.total_price,
                t.date.strftime('%d.%m.%Y %H:%M'),
                t.note or '',
            ]
            for t in transactions
        ]
        rows.append(['', 'ჯამი შესყიდვები', 0, 0, totals.purchases, '', ''])
        rows.append(['', 'ჯამი გაყიდვები', 0, 0, totals.sales, '', ''])
        rows.append(['', 'მოგება/ზარალი', 0, 0, totals.sales - totals.purchases, '', ''])

        df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
        return ImportExportService._to_xlsx(df, 'ბუღალტერია')

    @staticmethod
    def export_backup(
        products: Sequence[ProductRecord],
        transactions: Sequence[TransactionRecord],
        settings: Optional[SettingsRead] = None,
    ) -> Dict:
        """JSON バックアップ用の辞書を作成"""
        return {
            'products': [p.model_dump(mode='json') for p in products],
            'transactions': [t.model_dump(mode='json') for t in transactions],
            'settings': settings.model_dump(mode='json') if settings else None,
            'export_date': datetime.utcnow().isoformat(),
        }

    @staticmethod
    def import_backup(db: Session, payload) -> Dict[str, int]:
        """
        JSON バックアップを取り込む

        商品は新規登録し、取引は商品名で新しい商品に紐付け直す。
        該当する商品が見つからない取引はスキップする。
        """
        if not isinstance(payload, dict) or not isinstance(payload.get('products'), list):
            raise ImportFormatError("データが見つかりません（products がありません）")

        try:
            products = [BackupProduct.model_validate(p) for p in payload['products']]
            raw_transactions = payload.get('transactions') or []
            if not isinstance(raw_transactions, list):
                raise ImportFormatError("transactions は配列である必要があります")
            transactions = [BackupTransaction.model_validate(t) for t in raw_transactions]
        except ValidationError as e:
            raise ImportFormatError(f"バックアップ形式が不正です: {e.errors()[0]['msg']}") from e

        try:
            for p in products:
                db.add(Product(
                    name=p.name,
                    description=p.description or "",
                    price=p.price,
                    cost_price=p.cost_price,
                    stock=p.stock,
                    unit=p.unit or DEFAULT_UNIT,
                ))
            db.flush()

            imported = 0
            skipped = 0
            for t in transactions:
                product = db.query(Product).filter(Product.name == t.product_name).first()
                if product is None:
                    skipped += 1
                    continue
                db.add(Transaction(
                    type=t.type,
                    product_id=product.id,
                    product_name=t.product_name,
                    quantity=t.quantity,
                    unit_price=t.unit_price,
                    total_price=t.total_price,
                    date=t.date,
                    note=t.note,
                    cashier_id=t.cashier_id,
                    cashier_name=t.cashier_name,
                ))
                imported += 1

            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("backup imported: %d products, %d transactions (%d skipped)",
                    len(products), imported, skipped)
        return {
            'products': len(products),
            'transactions': imported,
            'skipped_transactions': skipped,
        }
