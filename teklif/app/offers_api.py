"""
Offers API - generate offers, browse the archive, download exports
"""
from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from teklif.app.deps import get_service_context, http_error
from teklif.app.services.quote_service import (
    QuoteServiceContext,
    ServiceError,
    export_offer,
    generate_offer,
)

router = APIRouter(prefix="/api", tags=["offers"])


@router.get("/offers")
def list_offers(ctx: QuoteServiceContext = Depends(get_service_context)):
    """Archived offers, most recent first."""
    return {"offers": ctx.archive.entries}


@router.get("/offers/{index}")
def get_offer(index: int, ctx: QuoteServiceContext = Depends(get_service_context)):
    if index < 0 or index >= len(ctx.archive):
        raise HTTPException(status_code=404, detail="Teklif bulunamadı")
    return {"offer": ctx.archive.entries[index]}


@router.post("/offers/generate")
def create_offer(ctx: QuoteServiceContext = Depends(get_service_context)):
    try:
        return generate_offer(ctx=ctx)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.get("/export/{kind}")
def download_export(
    kind: Literal["xlsx", "pdf", "doc"],
    ctx: QuoteServiceContext = Depends(get_service_context),
):
    try:
        payload, fmt = export_offer(kind=kind, ctx=ctx)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return Response(
        content=payload,
        media_type=fmt.media_type,
        headers={"Content-Disposition": f'attachment; filename="{fmt.filename}"'},
    )
