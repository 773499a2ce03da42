from __future__ import annotations

from fastapi import HTTPException, Request

from teklif.app.services.quote_service import QuoteServiceContext, ServiceError


def get_service_context(request: Request) -> QuoteServiceContext:
    ctx = getattr(request.app.state, "service_context", None)
    if ctx is None:
        raise RuntimeError("Service context not initialized.")
    return ctx


def http_error(exc: ServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)
