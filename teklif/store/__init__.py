from .catalog_store import (
    ALL_LIST_NAME,
    OfferArchive,
    PriceListStore,
    default_price_list,
    parse_catalog_rows,
)
from .kv_store import KeyValueStore

__all__ = [
    "ALL_LIST_NAME",
    "KeyValueStore",
    "OfferArchive",
    "PriceListStore",
    "default_price_list",
    "parse_catalog_rows",
]
