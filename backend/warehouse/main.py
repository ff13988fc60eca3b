from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from warehouse.config import CORS_ORIGINS, DEBUG, VERSION
from warehouse.database import SessionLocal, init_db
from warehouse.middleware import APIRateLimitMiddleware, RequestIdMiddleware, SecurityHeadersMiddleware
from warehouse.services.user_service import ensure_default_admin
from warehouse.routes import accounting, admin, assistant, audit, auth, expenses, health, products, transactions

init_db()
with SessionLocal() as _session:
    ensure_default_admin(_session)

# DEBUGモード時のみ API ドキュメントを公開
app = FastAPI(
    title="Warehouse Management API",
    description="在庫・仕入・販売・会計集計API",
    version=VERSION,
    docs_url="/docs" if DEBUG else None,
    redoc_url="/redoc" if DEBUG else None,
    openapi_url="/openapi.json" if DEBUG else None,
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(APIRateLimitMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS or ["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)

for module in (health, auth, products, transactions, expenses, accounting, admin, assistant, audit):
    app.include_router(module.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("warehouse.main:app", host="0.0.0.0", port=8000, reload=DEBUG)
