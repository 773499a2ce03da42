# main.py
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

BASE_DIR = Path(__file__).resolve().parent
REPO_ROOT = BASE_DIR.parent

# .env is read before the configuration constants below
load_dotenv(REPO_ROOT / ".env")

from teklif.app import admin_api, offers_api
from teklif.app.decoders import DEFAULT_OCR_LANG
from teklif.app.deps import get_service_context, http_error
from teklif.app.pdf import TEMPLATES_DIR, setup_jinja_env
from teklif.app.services.quote_service import (
    OfferSession,
    QuoteServiceContext,
    ServiceError,
    add_empty_item,
    add_item,
    compute_totals,
    convert_from_text,
    delete_item,
    delete_selected,
    import_document,
    import_image,
    import_spreadsheet,
    reset_session,
    select_item,
    session_snapshot,
    update_item_field,
    update_settings,
)
from teklif.store import KeyValueStore, OfferArchive, PriceListStore

# ---------- Logging ----------
logger = logging.getLogger("teklif")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)

# ---------- Paths & ENV ----------
DATA_ROOT = Path(os.getenv("DATA_ROOT", str(REPO_ROOT / "var")))
DB_PATH = os.getenv("TEKLIF_DB_PATH") or str(DATA_ROOT / "teklif.db")
OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", str(DATA_ROOT / "outputs")))
OCR_LANG = os.getenv("OCR_LANG", DEFAULT_OCR_LANG)
TESSERACT_CMD = (os.getenv("TESSERACT_CMD") or "").strip() or None
DEBUG = os.getenv("DEBUG", "0") == "1"
if DEBUG:
    logger.setLevel(logging.DEBUG)

_DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
_origins_env = os.getenv("FRONTEND_ORIGINS", "")
ALLOWED_ORIGINS = (
    [origin.strip() for origin in _origins_env.split(",") if origin.strip()]
    if _origins_env.strip()
    else _DEFAULT_ALLOWED_ORIGINS
)


def build_service_context(db_path: Optional[str] = None) -> QuoteServiceContext:
    kv = KeyValueStore(db_path or DB_PATH)
    return QuoteServiceContext(
        price_lists=PriceListStore(kv),
        archive=OfferArchive(kv),
        session=OfferSession(),
        env=setup_jinja_env(TEMPLATES_DIR),
        logger=logger,
        ocr_lang=OCR_LANG,
        tesseract_cmd=TESSERACT_CMD,
        output_dir=OUTPUT_DIR,
    )


# ---------- Request models ----------

class ConvertTextIn(BaseModel):
    text: str = ""


class SettingsIn(BaseModel):
    globalDiscount: Optional[float] = Field(None, ge=0, le=100)
    maturityDiff: Optional[float] = Field(None, ge=0, le=100)
    paymentType: Optional[str] = None
    activeList: Optional[str] = None


class ItemIn(BaseModel):
    code: str = ""
    name: str = ""
    quantity: float = Field(1.0, gt=0)
    unitPrice: float = Field(0.0, ge=0)
    discount: float = Field(0.0, ge=0, le=100)
    vat: float = Field(20.0, ge=0, le=100)


class ItemFieldIn(BaseModel):
    field: str = Field(..., pattern="^(quantity|unitPrice|discount|vat)$")
    value: Any = None


# ---------- FastAPI ----------

@asynccontextmanager
async def _lifespan(app: FastAPI):
    if getattr(app.state, "service_context", None) is None:
        app.state.service_context = build_service_context()
    logger.info("startup db=%s ocr_lang=%s origins=%s", DB_PATH, OCR_LANG, ALLOWED_ORIGINS)
    yield


app = FastAPI(title="Teklif Backend", lifespan=_lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(admin_api.router)
app.include_router(offers_api.router)


@app.get("/")
def root():
    return {"ok": True, "service": "teklif-backend", "health": "/api/health", "docs": "/docs"}


@app.get("/api/health")
def api_health():
    return {"ok": True, "time": datetime.now(timezone.utc).isoformat()}


# ---- session ----
@app.get("/api/session")
def api_session(ctx: QuoteServiceContext = Depends(get_service_context)):
    return session_snapshot(ctx=ctx)


@app.post("/api/session/reset")
def api_session_reset(ctx: QuoteServiceContext = Depends(get_service_context)):
    return reset_session(ctx=ctx)


@app.post("/api/session/settings")
def api_session_settings(payload: SettingsIn, ctx: QuoteServiceContext = Depends(get_service_context)):
    data: Dict[str, Any] = payload.model_dump(exclude_none=True)
    try:
        return update_settings(payload=data, ctx=ctx)
    except ServiceError as exc:
        raise http_error(exc) from exc


# ---- conversion ----
@app.post("/api/convert/text")
def api_convert_text(payload: ConvertTextIn, ctx: QuoteServiceContext = Depends(get_service_context)):
    try:
        return convert_from_text(text=payload.text, ctx=ctx)
    except ServiceError as exc:
        raise http_error(exc) from exc


_IMPORTERS = {
    "excel": import_spreadsheet,
    "word": import_document,
    "photo": import_image,
}


@app.post("/api/convert/{kind}")
async def api_convert_upload(
    kind: str,
    file: UploadFile = File(...),
    ctx: QuoteServiceContext = Depends(get_service_context),
):
    importer = _IMPORTERS.get(kind)
    if importer is None:
        raise HTTPException(status_code=404, detail=f"Bilinmeyen dosya türü: {kind}")
    data = await file.read()
    try:
        return await run_in_threadpool(importer, data=data, filename=file.filename or kind, ctx=ctx)
    except ServiceError as exc:
        raise http_error(exc) from exc


# ---- order lines ----
@app.post("/api/items")
def api_add_item(payload: ItemIn, ctx: QuoteServiceContext = Depends(get_service_context)):
    line = add_item(data=payload.model_dump(), ctx=ctx)
    return {"item": line.to_dict()}


@app.post("/api/items/empty")
def api_add_empty_item(ctx: QuoteServiceContext = Depends(get_service_context)):
    return {"item": add_empty_item(ctx=ctx).to_dict()}


@app.delete("/api/items/selected")
def api_delete_selected(ctx: QuoteServiceContext = Depends(get_service_context)):
    removed = delete_selected(ctx=ctx)
    return {"removed": removed.to_dict() if removed else None}


@app.patch("/api/items/{item_id}")
def api_update_item(item_id: str, payload: ItemFieldIn, ctx: QuoteServiceContext = Depends(get_service_context)):
    try:
        return update_item_field(item_id=item_id, field_name=payload.field, value=payload.value, ctx=ctx)
    except ServiceError as exc:
        raise http_error(exc) from exc


@app.delete("/api/items/{item_id}")
def api_delete_item(item_id: str, ctx: QuoteServiceContext = Depends(get_service_context)):
    try:
        return {"removed": delete_item(item_id=item_id, ctx=ctx).to_dict()}
    except ServiceError as exc:
        raise http_error(exc) from exc


@app.post("/api/items/{item_id}/select")
def api_select_item(item_id: str, ctx: QuoteServiceContext = Depends(get_service_context)):
    try:
        return {"selectedId": select_item(item_id=item_id, ctx=ctx)}
    except ServiceError as exc:
        raise http_error(exc) from exc


@app.get("/api/totals")
def api_totals(ctx: QuoteServiceContext = Depends(get_service_context)):
    per_line, totals = compute_totals(ctx.session)
    return {"lineTotals": per_line, "totals": totals.to_dict(), "paymentType": ctx.session.payment_type}


# ---------- local start ----------
if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "7860"))
    uvicorn.run("teklif.main:app", host="0.0.0.0", port=port, reload=False)
