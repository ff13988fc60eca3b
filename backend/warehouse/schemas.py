from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Literal, Optional
from warehouse.config import DEFAULT_CURRENCY, DEFAULT_UNIT

TransactionType = Literal["purchase", "sale"]

# ---------- カテゴリ・商品 ----------

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)

class CategoryRead(CategoryCreate):
    id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)
    description: str = ""
    category_id: Optional[str] = None
    price: float = Field(..., ge=0)
    cost_price: float = Field(..., ge=0)
    stock: int = Field(default=0, ge=0)
    unit: str = DEFAULT_UNIT

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=256)
    description: Optional[str] = None
    category_id: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    cost_price: Optional[float] = Field(default=None, ge=0)
    unit: Optional[str] = None

class ProductRecord(BaseModel):
    """集計エンジンに渡す商品レコード"""
    id: str
    name: str
    description: str = ""
    category_id: Optional[str] = None
    price: float = 0
    cost_price: float = 0
    stock: int = 0
    unit: str = DEFAULT_UNIT
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# ---------- 取引 ----------

class SaleCreate(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    # 省略時は商品の販売価格を使用
    unit_price: Optional[float] = Field(default=None, ge=0)
    note: Optional[str] = None

class PurchaseCreate(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    note: Optional[str] = None

class TransactionRecord(BaseModel):
    """集計エンジンに渡す取引レコード（数値の妥当性は検証しない）"""
    id: str
    type: TransactionType
    product_id: str
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    date: datetime
    note: Optional[str] = None
    cashier_id: Optional[str] = None
    cashier_name: Optional[str] = None

    class Config:
        from_attributes = True

# ---------- 経費 ----------

class ExpenseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=256)
    amount: float = Field(..., ge=0)
    category: str = ""
    date: Optional[datetime] = None
    note: Optional[str] = None

class ExpenseRecord(BaseModel):
    id: str
    title: str
    amount: float
    category: str = ""
    date: datetime
    note: Optional[str] = None

    class Config:
        from_attributes = True

# ---------- 会社設定 ----------

class SettingsUpdate(BaseModel):
    company_name: Optional[str] = None
    currency: Optional[str] = Field(default=None, min_length=1, max_length=8)
    phone: Optional[str] = None
    email: Optional[str] = None
    iban: Optional[str] = None
    address: Optional[str] = None

class SettingsRead(BaseModel):
    id: int
    company_name: str = ""
    currency: str = DEFAULT_CURRENCY
    phone: Optional[str] = None
    email: Optional[str] = None
    iban: Optional[str] = None
    address: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# ---------- 集計結果 ----------

class Totals(BaseModel):
    purchases: float = 0
    sales: float = 0
    expenses: float = 0
    cash_flow: float = 0

class ProductProfitStats(BaseModel):
    product_id: str
    product_name: str
    revenue: float = 0
    units_sold: int = 0
    cogs: float = 0
    gross_profit: float = 0
    margin: float = 0

class CashierStats(BaseModel):
    cashier_key: str
    name: str
    total_sales: float = 0
    transaction_count: int = 0

class DailyFlow(BaseModel):
    date: date
    purchases: float = 0
    sales: float = 0

class ProductRevenue(BaseModel):
    product_name: str
    revenue: float = 0

class AccountingReport(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    totals: Totals
    stock_value: float = 0
    profitability: List[ProductProfitStats] = []
    cashiers: List[CashierStats] = []
    daily: List[DailyFlow] = []
    top_products: List[ProductRevenue] = []

class DashboardSummary(BaseModel):
    product_count: int = 0
    low_stock_count: int = 0
    stock_value: float = 0
    today_sales: float = 0

# ---------- AIアシスタント ----------

class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1, max_length=4000)

class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)
