from __future__ import annotations

import logging

import pytest

from teklif.app.pdf import setup_jinja_env
from teklif.app.services.quote_service import OfferSession, QuoteServiceContext
from teklif.store import KeyValueStore, OfferArchive, PriceListStore


@pytest.fixture
def kv(tmp_path) -> KeyValueStore:
    store = KeyValueStore(tmp_path / "teklif.db")
    yield store
    store.close()


@pytest.fixture
def ctx(kv) -> QuoteServiceContext:
    return QuoteServiceContext(
        price_lists=PriceListStore(kv),
        archive=OfferArchive(kv),
        session=OfferSession(),
        env=setup_jinja_env(),
        logger=logging.getLogger("teklif.test"),
    )
