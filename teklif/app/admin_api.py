from __future__ import annotations

from typing import List, Optional, Union

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from teklif.app import error_messages
from teklif.app.deps import get_service_context, http_error
from teklif.app.services.quote_service import (
    QuoteServiceContext,
    ServiceError,
    import_price_list,
    list_price_lists,
)
from teklif.shared.catalog import DEFAULT_GROUP, CatalogItem


class CatalogItemIn(BaseModel):
    code: str = ""
    name: str = Field(..., min_length=1)
    price: float = Field(0.0, ge=0)


class PriceListIn(BaseModel):
    name: str = Field(..., min_length=1)
    group: str = DEFAULT_GROUP
    items: List[CatalogItemIn] = Field(default_factory=list)


class ItemEditIn(BaseModel):
    field: str = Field(..., pattern="^(code|name|price)$")
    value: Union[str, float, None] = None


class BulkDeleteIn(BaseModel):
    ids: List[str] = Field(default_factory=list)


router = APIRouter(prefix="/api/price-lists", tags=["price-lists"])


@router.get("")
def get_price_lists(ctx: QuoteServiceContext = Depends(get_service_context)):
    return {"lists": list_price_lists(ctx=ctx)}


@router.get("/{name}")
def get_price_list(name: str, ctx: QuoteServiceContext = Depends(get_service_context)):
    price_list = ctx.price_lists.get_list(name)
    if price_list is None:
        raise HTTPException(status_code=404, detail="Fiyat listesi bulunamadı")
    return price_list.to_dict()


@router.post("")
def save_price_list(payload: PriceListIn, ctx: QuoteServiceContext = Depends(get_service_context)):
    items = [CatalogItem(code=item.code, name=item.name, price=item.price) for item in payload.items]
    try:
        price_list = ctx.price_lists.add_list(payload.name, items, payload.group)
    except ValueError:
        raise HTTPException(status_code=400, detail=error_messages.LIST_NAME_REQUIRED) from None
    ctx.logger.info("catalog.save name=%s items=%d", price_list.name, len(items))
    return {"list": price_list.to_dict(), "message": error_messages.list_saved(price_list.name, len(items))}


@router.post("/upload")
async def upload_price_list(
    name: str = Form(""),
    group: str = Form(""),
    file: Optional[UploadFile] = File(None),
    ctx: QuoteServiceContext = Depends(get_service_context),
):
    data = await file.read() if file is not None else b""
    filename = file.filename if file is not None else ""
    try:
        return await run_in_threadpool(
            import_price_list, name=name, group=group, data=data, filename=filename or "", ctx=ctx
        )
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.patch("/{name}/items/{item_id}")
def edit_price_list_item(
    name: str,
    item_id: str,
    payload: ItemEditIn,
    ctx: QuoteServiceContext = Depends(get_service_context),
):
    try:
        item = ctx.price_lists.update_item(name, item_id, payload.field, payload.value)
    except KeyError:
        raise HTTPException(status_code=404, detail="Ürün bulunamadı") from None
    return {"item": item.to_dict()}


@router.post("/{name}/items/delete")
def bulk_delete_items(name: str, payload: BulkDeleteIn, ctx: QuoteServiceContext = Depends(get_service_context)):
    if not payload.ids:
        raise HTTPException(status_code=400, detail=error_messages.SELECT_ITEMS_TO_DELETE)
    try:
        removed = ctx.price_lists.delete_items(name, payload.ids)
    except KeyError:
        raise HTTPException(status_code=404, detail="Fiyat listesi bulunamadı") from None
    return {"removed": removed}
