import math
import random
from datetime import date, datetime, timedelta, timezone

import pytest

from warehouse.schemas import ExpenseRecord, ProductRecord, TransactionRecord
from warehouse.services import accounting
from warehouse.services.accounting import ADMIN_KEY, ADMIN_LABEL
from warehouse.utils.currency import format_currency

_counter = iter(range(1, 10_000))


def tx(type, total_price, product_id="p1", product_name="Item 1", quantity=1,
       unit_price=None, date=datetime(2024, 3, 1, 12, 0), **extra):
    return TransactionRecord(
        id=str(next(_counter)),
        type=type,
        product_id=product_id,
        product_name=product_name,
        quantity=quantity,
        unit_price=total_price / quantity if unit_price is None and quantity else (unit_price or 0),
        total_price=total_price,
        date=date,
        **extra,
    )


def product(id, cost_price, price=0, stock=0, name=None):
    return ProductRecord(id=id, name=name or id, cost_price=cost_price, price=price, stock=stock)


def expense(amount, day=datetime(2024, 3, 1, 9, 0)):
    return ExpenseRecord(id=str(next(_counter)), title="Rent", amount=amount, category="rent", date=day)


# ---------- compute_totals ----------

def test_totals_empty():
    totals = accounting.compute_totals([], [])
    assert totals.model_dump() == {"purchases": 0, "sales": 0, "expenses": 0, "cash_flow": 0}


def test_totals_purchase_and_sales():
    transactions = [
        tx("purchase", 100, quantity=2, unit_price=50),
        tx("sale", 150, unit_price=150),
        tx("sale", 150, unit_price=150),
    ]
    totals = accounting.compute_totals(transactions)
    assert totals.purchases == 100
    assert totals.sales == 300
    assert totals.expenses == 0
    assert totals.cash_flow == 200


def test_totals_subtracts_expenses():
    totals = accounting.compute_totals(
        [tx("purchase", 40), tx("sale", 100)],
        [expense(25), expense(5)],
    )
    assert totals.expenses == 30
    assert totals.cash_flow == 100 - 40 - 30


def test_cash_flow_identity_holds_for_random_input():
    rng = random.Random(7)
    transactions = [
        tx(rng.choice(["purchase", "sale"]), round(rng.uniform(0, 500), 2))
        for _ in range(40)
    ]
    expenses = [expense(round(rng.uniform(0, 100), 2)) for _ in range(5)]
    totals = accounting.compute_totals(transactions, expenses)
    assert totals.cash_flow == totals.sales - totals.purchases - totals.expenses


def test_totals_order_independent():
    transactions = [tx("sale", 10), tx("purchase", 3), tx("sale", 7), tx("purchase", 1)]
    shuffled = list(reversed(transactions))
    assert accounting.compute_totals(transactions) == accounting.compute_totals(shuffled)


def test_totals_does_not_mutate_input():
    transactions = [tx("sale", 10), tx("purchase", 3)]
    snapshot = [t.model_copy() for t in transactions]
    accounting.compute_totals(transactions)
    assert transactions == snapshot


# ---------- compute_product_profitability ----------

def test_profitability_basic():
    stats = accounting.compute_product_profitability(
        [tx("sale", 300, quantity=2)],
        [product("p1", cost_price=50)],
    )
    assert len(stats) == 1
    s = stats[0]
    assert s.product_id == "p1"
    assert s.revenue == 300
    assert s.units_sold == 2
    assert s.cogs == 100
    assert s.gross_profit == 200
    assert round(s.margin, 2) == 66.67


def test_profitability_ignores_purchases_and_empty():
    assert accounting.compute_product_profitability([], []) == []
    assert accounting.compute_product_profitability([tx("purchase", 100)], [product("p1", 10)]) == []


def test_profitability_zero_revenue_margin_is_zero():
    stats = accounting.compute_product_profitability(
        [tx("sale", 0, quantity=3, unit_price=0)],
        [product("p1", cost_price=5)],
    )
    assert stats[0].revenue == 0
    assert stats[0].margin == 0
    assert not math.isnan(stats[0].margin)


def test_profitability_unmatched_product_has_zero_cogs():
    stats = accounting.compute_product_profitability(
        [tx("sale", 90, product_id="ghost", product_name="Deleted", quantity=3)],
        [product("p1", cost_price=50)],
    )
    assert stats[0].product_id == "ghost"
    assert stats[0].cogs == 0
    assert stats[0].gross_profit == stats[0].revenue == 90


def test_profitability_uses_current_cost_price():
    transactions = [tx("sale", 100, quantity=1)]
    before = accounting.compute_product_profitability(transactions, [product("p1", cost_price=40)])
    after = accounting.compute_product_profitability(transactions, [product("p1", cost_price=70)])
    assert before[0].gross_profit == 60
    assert after[0].gross_profit == 30


def test_profitability_keeps_first_product_name():
    transactions = [
        tx("sale", 10, product_name="Old name"),
        tx("sale", 10, product_name="New name"),
    ]
    stats = accounting.compute_product_profitability(transactions, [product("p1", 1, name="New name")])
    assert stats[0].product_name == "Old name"
    assert stats[0].units_sold == 2


def test_profitability_sorted_by_gross_profit_stable():
    transactions = [
        tx("sale", 50, product_id="a", product_name="A"),
        tx("sale", 200, product_id="b", product_name="B"),
        tx("sale", 50, product_id="c", product_name="C"),
    ]
    stats = accounting.compute_product_profitability(transactions, [])
    assert [s.product_id for s in stats] == ["b", "a", "c"]


def test_profitability_negative_quantity_propagates():
    stats = accounting.compute_product_profitability(
        [tx("sale", 100, quantity=2), tx("sale", -50, quantity=-1, unit_price=50)],
        [product("p1", cost_price=10)],
    )
    assert stats[0].units_sold == 1
    assert stats[0].revenue == 50
    assert stats[0].cogs == 10


# ---------- compute_cashier_stats ----------

def test_cashier_stats_default_admin_bucket():
    stats = accounting.compute_cashier_stats([tx("sale", 120)])
    assert len(stats) == 1
    assert stats[0].cashier_key == ADMIN_KEY
    assert stats[0].name == ADMIN_LABEL
    assert stats[0].total_sales == 120
    assert stats[0].transaction_count == 1


def test_cashier_stats_none_and_empty_are_the_same():
    stats = accounting.compute_cashier_stats([
        tx("sale", 10, cashier_id=None, cashier_name=None),
        tx("sale", 15, cashier_id="", cashier_name=""),
    ])
    assert len(stats) == 1
    assert stats[0].cashier_key == ADMIN_KEY
    assert stats[0].transaction_count == 2


def test_cashier_stats_grouped_and_sorted():
    stats = accounting.compute_cashier_stats([
        tx("sale", 10, cashier_id="7", cashier_name="Nino"),
        tx("sale", 100, cashier_id="8", cashier_name="Giorgi"),
        tx("sale", 5, cashier_id="7", cashier_name="Nino"),
        tx("purchase", 999, cashier_id="7", cashier_name="Nino"),
    ])
    assert [(s.cashier_key, s.name, s.total_sales, s.transaction_count) for s in stats] == [
        ("8", "Giorgi", 100, 1),
        ("7", "Nino", 15, 2),
    ]


# ---------- idempotence ----------

def test_aggregators_are_idempotent():
    transactions = [
        tx("sale", 30, quantity=3, cashier_id="1", cashier_name="A"),
        tx("purchase", 12, quantity=2),
        tx("sale", 0.1, product_id="p2", product_name="Tiny"),
        tx("sale", 0.2, product_id="p2", product_name="Tiny"),
    ]
    products = [product("p1", 4), product("p2", 0.05)]
    expenses = [expense(1.5)]

    assert accounting.compute_totals(transactions, expenses) == accounting.compute_totals(transactions, expenses)
    assert (accounting.compute_product_profitability(transactions, products)
            == accounting.compute_product_profitability(transactions, products))
    assert accounting.compute_cashier_stats(transactions) == accounting.compute_cashier_stats(transactions)


def _fractional_ledger():
    transactions = [
        tx("sale", price, product_id=f"p{i % 2}", product_name=f"P{i % 2}",
           cashier_id=str(i % 3), cashier_name=f"C{i % 3}")
        for i, price in enumerate([0.1, 0.2, 0.3] * 5)
    ]
    return transactions + [tx("purchase", 0.7), tx("purchase", 0.1)]


@pytest.mark.parametrize("seed", range(5))
def test_aggregators_ignore_input_order_with_fractional_prices(seed):
    transactions = _fractional_ledger()
    products = [product("p0", 0.05), product("p1", 0.03)]
    shuffled = list(transactions)
    random.Random(seed).shuffle(shuffled)

    for other in (shuffled, list(reversed(transactions))):
        assert accounting.compute_totals(transactions) == accounting.compute_totals(other)
        assert (accounting.compute_product_profitability(transactions, products)
                == accounting.compute_product_profitability(other, products))
        assert accounting.compute_cashier_stats(transactions) == accounting.compute_cashier_stats(other)
        assert accounting.top_products_by_revenue(transactions) == accounting.top_products_by_revenue(other)
        assert accounting.compute_daily_flow(transactions) == accounting.compute_daily_flow(other)


def test_fractional_sums_are_exact():
    assert accounting.compute_totals([tx("sale", 0.1) for _ in range(10)]).sales == 1.0
    stats = accounting.compute_cashier_stats(_fractional_ledger())
    assert [(s.name, s.total_sales) for s in stats] == [("C2", 1.5), ("C1", 1.0), ("C0", 0.5)]


# ---------- report helpers ----------

def test_filter_by_date_range_is_inclusive_of_whole_days():
    early = tx("sale", 1, date=datetime(2024, 3, 1, 0, 0))
    late = tx("sale", 2, date=datetime(2024, 3, 2, 23, 59, 59))
    outside = tx("sale", 4, date=datetime(2024, 3, 3, 0, 0))

    result = accounting.filter_by_date_range([early, late, outside], date(2024, 3, 1), date(2024, 3, 2))
    assert result == [early, late]
    assert accounting.filter_by_date_range([early, outside], None, None) == [early, outside]
    assert accounting.filter_by_date_range([early, outside], start=date(2024, 3, 2)) == [outside]


def test_filter_by_date_range_compares_aware_dates_in_utc():
    tbilisi = timezone(timedelta(hours=4))
    # 2024-03-01 21:00 UTC と 2024-03-02 01:00 UTC
    evening = tx("sale", 1, date=datetime(2024, 3, 2, 1, 0, tzinfo=tbilisi))
    next_day = tx("sale", 2, date=datetime(2024, 3, 2, 5, 0, tzinfo=tbilisi))

    result = accounting.filter_by_date_range([evening, next_day], date(2024, 3, 1), date(2024, 3, 1))
    assert result == [evening]


def test_filter_by_type():
    sale, purchase = tx("sale", 1), tx("purchase", 1)
    assert accounting.filter_by_type([sale, purchase], "sale") == [sale]
    assert accounting.filter_by_type([sale, purchase]) == [sale, purchase]
    with pytest.raises(ValueError):
        accounting.filter_by_type([sale], "refund")


def test_daily_flow_is_chronological():
    flow = accounting.compute_daily_flow([
        tx("sale", 10, date=datetime(2024, 3, 2, 10)),
        tx("purchase", 4, date=datetime(2024, 3, 1, 9)),
        tx("sale", 6, date=datetime(2024, 3, 2, 18)),
    ])
    assert [(f.date, f.purchases, f.sales) for f in flow] == [
        (date(2024, 3, 1), 4, 0),
        (date(2024, 3, 2), 0, 16),
    ]


def test_top_products_by_revenue():
    transactions = [tx("sale", i * 10, product_id=f"p{i}", product_name=f"P{i}") for i in range(1, 9)]
    top = accounting.top_products_by_revenue(transactions, limit=3)
    assert [p.product_name for p in top] == ["P8", "P7", "P6"]


def test_stock_value_and_low_stock():
    products = [
        product("a", 1, price=10, stock=3),
        product("b", 1, price=2.5, stock=40),
        product("c", 1, price=1, stock=0),
    ]
    assert accounting.compute_stock_value(products) == 3 * 10 + 40 * 2.5
    assert [p.id for p in accounting.low_stock_products(products, threshold=10)] == ["c", "a"]


def test_build_report_applies_period_to_transactions_and_expenses():
    transactions = [
        tx("sale", 100, date=datetime(2024, 3, 5, 12)),
        tx("sale", 999, date=datetime(2024, 2, 1, 12)),
    ]
    expenses = [expense(10, datetime(2024, 3, 5, 8)), expense(500, datetime(2024, 1, 1))]
    report = accounting.build_report(
        transactions, [product("p1", 20, price=30, stock=2)], expenses,
        start=date(2024, 3, 1), end=date(2024, 3, 31),
    )
    assert report.totals.sales == 100
    assert report.totals.expenses == 10
    assert report.totals.cash_flow == 90
    assert report.stock_value == 60
    assert report.profitability[0].gross_profit == 80
    assert report.cashiers[0].cashier_key == ADMIN_KEY
    assert len(report.daily) == 1


def test_dashboard_summary():
    products = [product("a", 1, price=10, stock=3), product("b", 1, price=2.5, stock=40)]
    transactions = [
        tx("sale", 0.1, date=datetime(2024, 3, 5, 9)),
        tx("sale", 0.2, date=datetime(2024, 3, 5, 18)),
        tx("purchase", 50, date=datetime(2024, 3, 5, 10)),
        tx("sale", 99, date=datetime(2024, 3, 4, 23, 59)),
    ]
    summary = accounting.compute_dashboard(products, transactions, today=date(2024, 3, 5))
    assert summary.product_count == 2
    assert summary.low_stock_count == 1
    assert summary.stock_value == 130
    assert summary.today_sales == pytest.approx(0.3)


def test_dashboard_empty():
    summary = accounting.compute_dashboard([], [])
    assert (summary.product_count, summary.low_stock_count, summary.stock_value, summary.today_sales) == (0, 0, 0, 0)


def test_format_currency():
    assert format_currency(12.5) == "12.50 ₾"
    assert format_currency(-3, "$") == "-3.00 $"
