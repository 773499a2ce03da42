"""Quote service layer holding the offer-building workflows.

The FastAPI handlers and the CLI both call into these functions. Every
function receives a :class:`QuoteServiceContext` carrying the price lists,
the archive and the single :class:`OfferSession` being edited, so there is
no ambient module state.

Free text flows through ``extract_lines`` -> ``match_requests`` ->
``materialize`` and the resulting order lines are appended in one step.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from jinja2 import Environment

from teklif.app import error_messages
from teklif.app.decoders import (
    DecodeError,
    decode_workbook,
    extract_document_text,
    recognize_image,
    rows_to_text,
)
from teklif.app.exporters import EXPORT_FORMATS, ExportFormat, build_export_context, render_export
from teklif.app.pricing import (
    DEFAULT_DISCOUNT_PCT,
    DEFAULT_VAT_PCT,
    EDITABLE_FIELDS,
    OrderLine,
    PricingTotals,
    aggregate,
    format_try,
    line_total,
    line_totals,
)
from teklif.shared.catalog import CatalogItem, PriceList
from teklif.shared.line_extractor import Request, extract_lines
from teklif.shared.numbers import parse_number, parse_positive
from teklif.shared.token_matcher import EmptyCatalogError, match_requests
from teklif.store.catalog_store import ALL_LIST_NAME, OfferArchive, PriceListStore, parse_catalog_rows

DEFAULT_PAYMENT_TYPE = "Peşin"
EMPTY_ITEM_NAME = "Yeni Ürün"
OFFER_TITLE_PREFIX = "Teklif #"
ARCHIVE_DATE_FORMAT = "%d.%m.%Y %H:%M:%S"


class ServiceError(Exception):
    """Domain specific error that can be translated to HTTP responses."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class OfferSession:
    items: List[OrderLine] = field(default_factory=list)
    selected_id: Optional[str] = None
    global_discount_pct: float = 0.0
    maturity_pct: float = 0.0
    payment_type: str = DEFAULT_PAYMENT_TYPE
    active_list: str = ALL_LIST_NAME
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)
    decode_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def find(self, item_id: str) -> Optional[OrderLine]:
        return next((line for line in self.items if line.id == item_id), None)


@dataclass
class QuoteServiceContext:
    price_lists: PriceListStore
    archive: OfferArchive
    session: OfferSession
    env: Environment
    logger: Any
    ocr_lang: str = "tur"
    tesseract_cmd: Optional[str] = None
    output_dir: Optional[Path] = None


# ---------- pipeline ----------

def materialize(request: Request, matched: CatalogItem) -> OrderLine:
    return OrderLine(
        code=matched.code,
        name=matched.name,
        quantity=parse_positive(request.quantity, 1.0),
        unit_price=parse_number(matched.price),
        discount_pct=DEFAULT_DISCOUNT_PCT,
        vat_pct=DEFAULT_VAT_PCT,
    )


def build_order_lines(text: str, catalog: List[CatalogItem]) -> List[OrderLine]:
    """Pure text -> order line pipeline. Blank text never touches the catalog."""
    requests = extract_lines(text)
    if not requests:
        return []
    matched = match_requests(requests, catalog)
    return [materialize(request, item) for request, item in zip(requests, matched)]


def convert_from_text(*, text: str, ctx: QuoteServiceContext) -> Dict[str, Any]:
    session = ctx.session
    catalog = ctx.price_lists.searchable_items(session.active_list)
    try:
        lines = build_order_lines(text or "", catalog)
    except EmptyCatalogError as exc:
        ctx.logger.warning("offer.convert empty catalog list=%s", session.active_list)
        raise ServiceError(error_messages.EMPTY_CATALOG, status_code=409) from exc

    if not lines:
        return {"added": [], "message": error_messages.EMPTY_REQUEST_TEXT}

    with session.lock:
        session.items.extend(lines)
    ctx.logger.info(
        "offer.convert list=%s catalog=%d added=%d", session.active_list, len(catalog), len(lines)
    )
    return {"added": [line.to_dict() for line in lines], "message": error_messages.CONVERTED_FROM_TEXT}


@contextmanager
def _exclusive_decode(session: OfferSession) -> Iterator[None]:
    if not session.decode_lock.acquire(blocking=False):
        raise ServiceError(error_messages.DECODE_IN_PROGRESS, status_code=409)
    try:
        yield
    finally:
        session.decode_lock.release()


def _import_asset(
    *,
    filename: str,
    decode: Callable[[], str],
    failure_message: str,
    success_message: str,
    ctx: QuoteServiceContext,
) -> Dict[str, Any]:
    with _exclusive_decode(ctx.session):
        try:
            text = decode()
        except DecodeError as exc:
            ctx.logger.warning("offer.import failed file=%s: %s", filename, exc)
            raise ServiceError(failure_message, status_code=422) from exc
        result = convert_from_text(text=text, ctx=ctx)
    result["text"] = text
    result["message"] = success_message
    return result


def import_spreadsheet(*, data: bytes, filename: str, ctx: QuoteServiceContext) -> Dict[str, Any]:
    return _import_asset(
        filename=filename,
        decode=lambda: rows_to_text(decode_workbook(data)),
        failure_message=error_messages.file_unreadable(filename),
        success_message=error_messages.file_loaded(filename),
        ctx=ctx,
    )


def import_document(*, data: bytes, filename: str, ctx: QuoteServiceContext) -> Dict[str, Any]:
    return _import_asset(
        filename=filename,
        decode=lambda: extract_document_text(data),
        failure_message=error_messages.file_unreadable(filename),
        success_message=error_messages.file_loaded(filename),
        ctx=ctx,
    )


def import_image(*, data: bytes, filename: str, ctx: QuoteServiceContext) -> Dict[str, Any]:
    return _import_asset(
        filename=filename,
        decode=lambda: recognize_image(data, lang=ctx.ocr_lang, tesseract_cmd=ctx.tesseract_cmd),
        failure_message=error_messages.IMAGE_FAILED,
        success_message=error_messages.file_converted(filename),
        ctx=ctx,
    )


# ---------- order line editing ----------

def add_item(*, data: Dict[str, Any], ctx: QuoteServiceContext) -> OrderLine:
    line = OrderLine(
        code=str(data.get("code") or ""),
        name=str(data.get("name") or EMPTY_ITEM_NAME),
        quantity=parse_number(data.get("quantity"), 1.0),
        unit_price=parse_number(data.get("unitPrice")),
        discount_pct=parse_number(data.get("discount"), DEFAULT_DISCOUNT_PCT),
        vat_pct=parse_number(data.get("vat"), DEFAULT_VAT_PCT),
    )
    with ctx.session.lock:
        ctx.session.items.append(line)
    return line


def add_empty_item(*, ctx: QuoteServiceContext) -> OrderLine:
    return add_item(data={"code": "", "name": EMPTY_ITEM_NAME, "quantity": 1, "unitPrice": 0}, ctx=ctx)


def _require_line(session: OfferSession, item_id: str) -> OrderLine:
    line = session.find(item_id)
    if line is None:
        raise ServiceError("Kalem bulunamadı.", status_code=404)
    return line


def select_item(*, item_id: str, ctx: QuoteServiceContext) -> Optional[str]:
    """Toggle the selection; selecting the selected line clears it."""
    session = ctx.session
    with session.lock:
        _require_line(session, item_id)
        session.selected_id = None if session.selected_id == item_id else item_id
        return session.selected_id


def delete_item(*, item_id: str, ctx: QuoteServiceContext) -> OrderLine:
    session = ctx.session
    with session.lock:
        line = _require_line(session, item_id)
        session.items = [existing for existing in session.items if existing.id != item_id]
        if session.selected_id == item_id:
            session.selected_id = None
        return line


def delete_selected(*, ctx: QuoteServiceContext) -> Optional[OrderLine]:
    session = ctx.session
    with session.lock:
        if not session.selected_id:
            return None
        return delete_item(item_id=session.selected_id, ctx=ctx)


def update_item_field(*, item_id: str, field_name: str, value: Any, ctx: QuoteServiceContext) -> Dict[str, Any]:
    attr = EDITABLE_FIELDS.get(field_name)
    if attr is None:
        raise ServiceError(f"Alan düzenlenemez: {field_name}", status_code=400)
    session = ctx.session
    with session.lock:
        line = _require_line(session, item_id)
        setattr(line, attr, parse_number(value))
        total = line_total(line, session.global_discount_pct)
    return {"item": line.to_dict(), "lineTotal": total, "lineTotalText": format_try(total)}


def update_settings(*, payload: Dict[str, Any], ctx: QuoteServiceContext) -> Dict[str, Any]:
    session = ctx.session
    with session.lock:
        if "globalDiscount" in payload:
            session.global_discount_pct = parse_number(payload.get("globalDiscount"))
        if "maturityDiff" in payload:
            session.maturity_pct = parse_number(payload.get("maturityDiff"))
        if payload.get("paymentType"):
            session.payment_type = str(payload["paymentType"])
        if payload.get("activeList"):
            name = str(payload["activeList"])
            if name != ALL_LIST_NAME and ctx.price_lists.get_list(name) is None:
                raise ServiceError(f"Fiyat listesi bulunamadı: {name}", status_code=404)
            session.active_list = name
    return session_snapshot(ctx=ctx)


def reset_session(*, ctx: QuoteServiceContext) -> Dict[str, Any]:
    with ctx.session.lock:
        ctx.session.items = []
        ctx.session.selected_id = None
    return {"ok": True, "message": "Teklif listesi temizlendi."}


# ---------- totals ----------

def compute_totals(session: OfferSession) -> Tuple[List[float], PricingTotals]:
    with session.lock:
        lines = list(session.items)
        global_discount = session.global_discount_pct
        maturity = session.maturity_pct
    per_line = line_totals(lines, global_discount)
    return per_line, aggregate(lines, global_discount, maturity)


def _formatted_totals(totals: PricingTotals) -> Dict[str, str]:
    return {key: format_try(value) for key, value in totals.to_dict().items()}


def session_snapshot(*, ctx: QuoteServiceContext) -> Dict[str, Any]:
    session = ctx.session
    per_line, totals = compute_totals(session)
    with session.lock:
        items = [
            {**line.to_dict(), "lineTotal": total, "lineTotalText": format_try(total)}
            for line, total in zip(session.items, per_line)
        ]
        return {
            "items": items,
            "selectedId": session.selected_id,
            "globalDiscount": session.global_discount_pct,
            "maturityDiff": session.maturity_pct,
            "paymentType": session.payment_type,
            "activeList": session.active_list,
            "totals": totals.to_dict(),
            "totalsText": _formatted_totals(totals),
        }


# ---------- offers & exports ----------

def generate_offer(*, ctx: QuoteServiceContext, now: Optional[datetime] = None) -> Dict[str, Any]:
    session = ctx.session
    if not session.items:
        raise ServiceError(error_messages.EMPTY_OFFER, status_code=400)
    with session.lock:
        per_line, totals = compute_totals(session)
        items = [line.to_dict() for line in session.items]
    entry = {
        "title": f"{OFFER_TITLE_PREFIX}{len(ctx.archive) + 1}",
        "date": (now or datetime.now()).strftime(ARCHIVE_DATE_FORMAT),
        "items": items,
        "grandTotal": sum(per_line),
    }
    ctx.archive.add(entry)
    ctx.logger.info("offer.generate title=%s items=%d grand=%.2f", entry["title"], len(items), entry["grandTotal"])
    return {"offer": entry, "message": error_messages.offer_created(format_try(totals.grand_total))}


def export_offer(*, kind: str, ctx: QuoteServiceContext) -> Tuple[bytes, ExportFormat]:
    fmt = EXPORT_FORMATS.get(kind)
    if fmt is None:
        raise ServiceError(f"Desteklenmeyen dışa aktarma biçimi: {kind}", status_code=400)
    session = ctx.session
    if not session.items:
        raise ServiceError(error_messages.EMPTY_EXPORT, status_code=400)
    per_line, totals = compute_totals(session)
    with session.lock:
        context = build_export_context(
            list(session.items),
            totals,
            global_discount_pct=session.global_discount_pct,
            maturity_pct=session.maturity_pct,
            payment_type=session.payment_type,
        )
    try:
        payload = render_export(kind, ctx.env, context)
    except RuntimeError as exc:
        ctx.logger.error("offer.export failed kind=%s: %s", kind, exc)
        raise ServiceError(str(exc), status_code=503) from exc
    if ctx.output_dir is not None:
        ctx.output_dir.mkdir(parents=True, exist_ok=True)
        (ctx.output_dir / fmt.filename).write_bytes(payload)
    ctx.logger.info("offer.export kind=%s rows=%d bytes=%d", kind, len(context["rows"]), len(payload))
    return payload, fmt


# ---------- price lists ----------

def import_price_list(
    *, name: str, group: Optional[str], data: bytes, filename: str, ctx: QuoteServiceContext
) -> Dict[str, Any]:
    name = (name or "").strip()
    if not name or not data:
        raise ServiceError(error_messages.LIST_NAME_AND_FILE_REQUIRED, status_code=400)
    try:
        rows = decode_workbook(data)
    except DecodeError as exc:
        ctx.logger.warning("catalog.import failed file=%s: %s", filename, exc)
        raise ServiceError(error_messages.file_unreadable(filename), status_code=422) from exc
    items = parse_catalog_rows(rows)
    price_list = ctx.price_lists.add_list(name, items, group or "")
    ctx.logger.info("catalog.import name=%s items=%d", name, len(items))
    return {"list": _price_list_summary(price_list), "message": error_messages.list_saved(name, len(items))}


def _price_list_summary(price_list: PriceList) -> Dict[str, Any]:
    return {"name": price_list.name, "group": price_list.group, "count": len(price_list.items)}


def list_price_lists(*, ctx: QuoteServiceContext) -> List[Dict[str, Any]]:
    return [_price_list_summary(price_list) for price_list in ctx.price_lists.lists]
