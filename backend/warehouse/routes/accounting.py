from datetime import date, datetime
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session
from typing import List
from warehouse.database import get_db
from warehouse.schemas import AccountingReport, CashierStats, DailyFlow, DashboardSummary, ProductProfitStats, ProductRevenue, Totals
from warehouse.services import accounting
from warehouse.services.import_export_service import ImportExportService
from warehouse.services.ledger_service import LedgerService
from warehouse.utils.jwt_auth import get_current_user, require_admin

router = APIRouter(prefix="/api/accounting", tags=["accounting"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

def _period_transactions(db: Session, start_date: date, end_date: date):
    return accounting.filter_by_date_range(LedgerService.load_transactions(db), start_date, end_date)

@router.get("/dashboard", response_model=DashboardSummary)
def get_dashboard(
    current_user=Depends(get_current_user),
    db: Session = Depends(get_db),
    today: date = None
):
    """ダッシュボード（全ユーザー向け）"""
    return accounting.compute_dashboard(
        LedgerService.load_products(db),
        LedgerService.load_transactions(db),
        today
    )

@router.get("/totals", response_model=Totals)
def get_totals(
    current_user=Depends(require_admin),
    db: Session = Depends(get_db),
    start_date: date = None,
    end_date: date = None
):
    """仕入・売上・経費合計とキャッシュフロー"""
    transactions = _period_transactions(db, start_date, end_date)
    expenses = accounting.filter_by_date_range(LedgerService.load_expenses(db), start_date, end_date)
    return accounting.compute_totals(transactions, expenses)

@router.get("/profitability", response_model=List[ProductProfitStats])
def get_profitability(
    current_user=Depends(require_admin),
    db: Session = Depends(get_db),
    start_date: date = None,
    end_date: date = None
):
    """商品別の粗利（現在の仕入原価で計算）"""
    return accounting.compute_product_profitability(
        _period_transactions(db, start_date, end_date),
        LedgerService.load_products(db)
    )

@router.get("/cashiers", response_model=List[CashierStats])
def get_cashier_stats(
    current_user=Depends(require_admin),
    db: Session = Depends(get_db),
    start_date: date = None,
    end_date: date = None
):
    """担当者別の売上"""
    return accounting.compute_cashier_stats(_period_transactions(db, start_date, end_date))

@router.get("/daily", response_model=List[DailyFlow])
def get_daily_flow(
    current_user=Depends(require_admin),
    db: Session = Depends(get_db),
    start_date: date = None,
    end_date: date = None
):
    """日別の仕入・売上推移"""
    return accounting.compute_daily_flow(_period_transactions(db, start_date, end_date))

@router.get("/top-products", response_model=List[ProductRevenue])
def get_top_products(
    current_user=Depends(require_admin),
    db: Session = Depends(get_db),
    start_date: date = None,
    end_date: date = None,
    limit: int = Query(6, ge=1, le=50)
):
    """売上上位の商品"""
    return accounting.top_products_by_revenue(_period_transactions(db, start_date, end_date), limit)

@router.get("/report", response_model=AccountingReport)
def get_report(
    current_user=Depends(require_admin),
    db: Session = Depends(get_db),
    start_date: date = None,
    end_date: date = None
):
    """会計レポート一式"""
    return accounting.build_report(
        LedgerService.load_transactions(db),
        LedgerService.load_products(db),
        LedgerService.load_expenses(db),
        start_date,
        end_date
    )

@router.get("/export")
def export_accounting(
    current_user=Depends(require_admin),
    db: Session = Depends(get_db),
    start_date: date = None,
    end_date: date = None
):
    """期間内の取引を Excel で出力"""
    transactions = _period_transactions(db, start_date, end_date)
    content = ImportExportService.export_transactions_xlsx(
        transactions, accounting.compute_totals(transactions)
    )
    filename = f"accounting_{datetime.utcnow().strftime('%Y-%m-%d')}.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
