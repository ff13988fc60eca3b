import json
from datetime import datetime
from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile
from sqlalchemy.orm import Session
from warehouse.config import MAX_UPLOAD_SIZE_MB
from warehouse.database import get_db
from warehouse.schemas import SettingsRead, SettingsUpdate
from warehouse.services.import_export_service import ImportExportService, ImportFormatError
from warehouse.services.inventory_service import InventoryService
from warehouse.services.ledger_service import LedgerService
from warehouse.utils.audit_logger import audit_request
from warehouse.utils.logger import get_logger
from warehouse.routes.accounting import XLSX_MEDIA_TYPE
from warehouse.utils.jwt_auth import require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"])

logger = get_logger(__name__)

async def _read_upload(file: UploadFile) -> bytes:
    """アップロードファイルを読み込む（サイズ上限あり）"""
    content = await file.read()
    if len(content) > MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"ファイルサイズは {MAX_UPLOAD_SIZE_MB}MB 以下にしてください")
    if not content:
        raise HTTPException(status_code=400, detail="ファイルが空です")
    return content

# ---------- 会社設定 ----------

@router.get("/settings", response_model=SettingsRead)
def get_settings(current_user=Depends(require_admin), db: Session = Depends(get_db)):
    return LedgerService.get_settings(db)

@router.put("/settings", response_model=SettingsRead)
def update_settings(data: SettingsUpdate, current_user=Depends(require_admin), db: Session = Depends(get_db)):
    """会社設定を更新（指定された項目のみ）"""
    settings = LedgerService.get_settings(db)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(settings, field, value)
    settings.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(settings)
    return settings

# ---------- インポート / エクスポート ----------

@router.get("/export")
def export_data(current_user=Depends(require_admin), db: Session = Depends(get_db)):
    """全データの JSON バックアップ"""
    payload = ImportExportService.export_backup(
        LedgerService.load_products(db),
        LedgerService.load_transactions(db),
        LedgerService.get_settings_record(db)
    )
    filename = f"backup-{datetime.utcnow().strftime('%Y-%m-%d')}.json"
    return Response(
        content=json.dumps(payload, ensure_ascii=False, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )

@router.post("/import")
async def import_data(request: Request, file: UploadFile = File(...), current_user=Depends(require_admin), db: Session = Depends(get_db)):
    """JSON バックアップを取り込む"""
    content = await _read_upload(file)
    try:
        payload = json.loads(ImportExportService.decode(content))
        counts = ImportExportService.import_backup(db, payload)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="ファイル形式が正しくありません")
    except ImportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit_request(request, "data_imported", user=current_user, details=counts)
    return {"success": True, **counts}

@router.post("/import-products")
async def import_products(request: Request, file: UploadFile = File(...), current_user=Depends(require_admin), db: Session = Depends(get_db)):
    """Excel / CSV から商品を一括登録"""
    content = await _read_upload(file)
    try:
        count = ImportExportService.import_products(db, content, file.filename or "", cashier=current_user)
    except ImportFormatError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    audit_request(request, "products_imported", user=current_user, details={"filename": file.filename, "count": count})
    return {"success": True, "count": count}

@router.get("/import-template")
def download_import_template(current_user=Depends(require_admin)):
    return Response(
        content=ImportExportService.build_import_template(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="import_template.xlsx"'}
    )

@router.post("/merge-duplicates")
def merge_duplicates(request: Request, current_user=Depends(require_admin), db: Session = Depends(get_db)):
    """同名の重複商品をまとめる"""
    merged = InventoryService.merge_duplicate_products(db)
    audit_request(request, "products_merged", user=current_user, details={"groups": merged})
    return {"success": True, "merged_groups": merged}
