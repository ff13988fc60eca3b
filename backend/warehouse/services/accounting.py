"""
帳簿集計エンジン

取引・商品・経費のリストから会計レポートの派生値を計算する純粋関数群。
入力は読み取りのみで、I/O も行わない。数値の丸めは表示側の責務。
金額の合計は math.fsum で行い、入力の並び順によって結果が変わらないようにする。
"""

import math
from collections import OrderedDict
from datetime import date, datetime, time, timezone
from typing import Iterable, List, Optional, Sequence

from warehouse.config import LOW_STOCK_THRESHOLD
from warehouse.schemas import (
    AccountingReport,
    CashierStats,
    DailyFlow,
    DashboardSummary,
    ExpenseRecord,
    ProductProfitStats,
    ProductRecord,
    ProductRevenue,
    Totals,
    TransactionRecord,
)

# 担当者が記録されていない販売は管理者の販売として扱う
ADMIN_KEY = "admin"
ADMIN_LABEL = "Administrator"

TRANSACTION_TYPES = ("all", "purchase", "sale")


def _sales(transactions: Iterable[TransactionRecord]) -> List[TransactionRecord]:
    return [t for t in transactions if t.type == "sale"]


def compute_totals(
    transactions: Sequence[TransactionRecord],
    expenses: Sequence[ExpenseRecord] = (),
) -> Totals:
    """仕入・売上・経費の合計とキャッシュフローを計算"""
    purchases = math.fsum(t.total_price for t in transactions if t.type == "purchase")
    sales = math.fsum(t.total_price for t in transactions if t.type == "sale")
    expense_total = math.fsum(e.amount for e in expenses)
    return Totals(
        purchases=purchases,
        sales=sales,
        expenses=expense_total,
        cash_flow=sales - purchases - expense_total,
    )


def compute_product_profitability(
    transactions: Sequence[TransactionRecord],
    products: Sequence[ProductRecord],
) -> List[ProductProfitStats]:
    """
    商品別の売上・原価・粗利を計算（粗利の降順）

    原価は呼び出し時点の商品マスタの仕入原価で計算する。
    商品マスタに存在しない商品の原価は 0 とする。
    商品名は最初に出現した取引のものを使う。
    """
    cost_by_id = {p.id: p.cost_price for p in products}
    groups = OrderedDict()

    for t in _sales(transactions):
        if t.product_id not in groups:
            groups[t.product_id] = {"product_name": t.product_name, "revenue": [], "units": [], "cogs": []}
        entry = groups[t.product_id]
        entry["revenue"].append(t.total_price)
        entry["units"].append(t.quantity)
        entry["cogs"].append(t.quantity * cost_by_id.get(t.product_id, 0))

    stats = []
    for product_id, entry in groups.items():
        revenue = math.fsum(entry["revenue"])
        cogs = math.fsum(entry["cogs"])
        gross_profit = revenue - cogs
        stats.append(ProductProfitStats(
            product_id=product_id,
            product_name=entry["product_name"],
            revenue=revenue,
            units_sold=sum(entry["units"]),
            cogs=cogs,
            gross_profit=gross_profit,
            margin=gross_profit / revenue * 100 if revenue > 0 else 0,
        ))

    # sorted は安定ソートなので同額の場合は出現順を保つ
    return sorted(stats, key=lambda s: s.gross_profit, reverse=True)


def compute_cashier_stats(transactions: Sequence[TransactionRecord]) -> List[CashierStats]:
    """担当者別の売上合計と件数（売上の降順）"""
    groups = OrderedDict()

    for t in _sales(transactions):
        key = t.cashier_id or ADMIN_KEY
        if key not in groups:
            groups[key] = {"name": None, "sales": []}
        entry = groups[key]
        if not entry["name"] and t.cashier_name:
            entry["name"] = t.cashier_name
        entry["sales"].append(t.total_price)

    stats = [
        CashierStats(
            cashier_key=key,
            name=entry["name"] or ADMIN_LABEL,
            total_sales=math.fsum(entry["sales"]),
            transaction_count=len(entry["sales"]),
        )
        for key, entry in groups.items()
    ]
    return sorted(stats, key=lambda s: s.total_sales, reverse=True)


def _as_datetime(value, end_of_day: bool = False) -> datetime:
    if isinstance(value, datetime):
        day = value.date()
    else:
        day = value
    return datetime.combine(day, time.max if end_of_day else time.min)


def _naive_utc(moment: datetime) -> datetime:
    """タイムゾーン付きの日時は UTC に変換してから tzinfo を外す"""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def filter_by_date_range(
    transactions: Sequence,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list:
    """
    期間で絞り込む（開始日の0時から終了日の終わりまでを含む）

    取引・経費どちらのレコードにも使える（``date`` 属性を参照）。
    日付の境界は UTC で判定する。
    """
    lower = _as_datetime(start) if start else None
    upper = _as_datetime(end, end_of_day=True) if end else None

    result = []
    for record in transactions:
        moment = _naive_utc(record.date)
        if lower and moment < lower:
            continue
        if upper and moment > upper:
            continue
        result.append(record)
    return result


def filter_by_type(transactions: Sequence[TransactionRecord], tx_type: str = "all") -> List[TransactionRecord]:
    """取引種別で絞り込む（'all' / 'purchase' / 'sale'）"""
    if tx_type not in TRANSACTION_TYPES:
        raise ValueError(f"tx_type must be one of {TRANSACTION_TYPES}, got {tx_type!r}")
    if tx_type == "all":
        return list(transactions)
    return [t for t in transactions if t.type == tx_type]


def compute_daily_flow(transactions: Sequence[TransactionRecord]) -> List[DailyFlow]:
    """日別の仕入・売上合計（古い日付から）"""
    days = {}
    for t in transactions:
        day = _naive_utc(t.date).date()
        if day not in days:
            days[day] = {"purchase": [], "sale": []}
        if t.type in days[day]:
            days[day][t.type].append(t.total_price)

    return [
        DailyFlow(date=day, purchases=math.fsum(values["purchase"]), sales=math.fsum(values["sale"]))
        for day, values in sorted(days.items())
    ]


def top_products_by_revenue(transactions: Sequence[TransactionRecord], limit: int = 6) -> List[ProductRevenue]:
    """商品名別の売上上位"""
    revenue_by_name = OrderedDict()
    for t in _sales(transactions):
        revenue_by_name.setdefault(t.product_name, []).append(t.total_price)

    totals = [(name, math.fsum(values)) for name, values in revenue_by_name.items()]
    ranked = sorted(totals, key=lambda item: item[1], reverse=True)
    return [ProductRevenue(product_name=name, revenue=value) for name, value in ranked[:limit]]


def compute_stock_value(products: Sequence[ProductRecord]) -> float:
    """在庫評価額（販売価格ベース）"""
    return math.fsum(p.stock * p.price for p in products)


def low_stock_products(products: Sequence[ProductRecord], threshold: int = LOW_STOCK_THRESHOLD) -> List[ProductRecord]:
    return sorted((p for p in products if p.stock <= threshold), key=lambda p: p.stock)


def compute_dashboard(
    products: Sequence[ProductRecord],
    transactions: Sequence[TransactionRecord],
    today: Optional[date] = None,
    threshold: int = LOW_STOCK_THRESHOLD,
) -> DashboardSummary:
    """ダッシュボードの集計（商品数・在庫僅少数・在庫評価額・本日の売上）"""
    today = today or datetime.utcnow().date()
    today_sales = math.fsum(
        t.total_price for t in _sales(transactions) if _naive_utc(t.date).date() == today
    )
    return DashboardSummary(
        product_count=len(products),
        low_stock_count=len(low_stock_products(products, threshold)),
        stock_value=compute_stock_value(products),
        today_sales=today_sales,
    )


def build_report(
    transactions: Sequence[TransactionRecord],
    products: Sequence[ProductRecord],
    expenses: Sequence[ExpenseRecord] = (),
    start: Optional[date] = None,
    end: Optional[date] = None,
    top_limit: int = 6,
) -> AccountingReport:
    """期間指定の会計レポートをまとめて作成"""
    period_transactions = filter_by_date_range(transactions, start, end)
    period_expenses = filter_by_date_range(expenses, start, end)

    return AccountingReport(
        start_date=start,
        end_date=end,
        totals=compute_totals(period_transactions, period_expenses),
        stock_value=compute_stock_value(products),
        profitability=compute_product_profitability(period_transactions, products),
        cashiers=compute_cashier_stats(period_transactions),
        daily=compute_daily_flow(period_transactions),
        top_products=top_products_by_revenue(period_transactions, top_limit),
    )
