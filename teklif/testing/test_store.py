from __future__ import annotations

import pytest

from teklif.shared.catalog import CatalogItem
from teklif.store import (
    ALL_LIST_NAME,
    KeyValueStore,
    OfferArchive,
    PriceListStore,
    default_price_list,
    parse_catalog_rows,
)


def _content(items):
    return [(item.code, item.name, item.price) for item in items]


def test_kv_roundtrip_and_upsert(kv: KeyValueStore) -> None:
    assert kv.get("missing") is None
    kv.set("priceLists", [{"name": "Hepsi", "items": []}])
    kv.set("priceLists", [{"name": "Kolektör", "items": []}])
    assert kv.get("priceLists") == [{"name": "Kolektör", "items": []}]
    assert kv.delete("priceLists") is True
    assert kv.get("priceLists") is None


def test_memory_store_keeps_data_while_open() -> None:
    store = KeyValueStore(":memory:")
    try:
        store.set("offerArchive", [{"title": "Teklif #1"}])
        assert store.get("offerArchive") == [{"title": "Teklif #1"}]
    finally:
        store.close()


def test_first_load_seeds_default_list(kv: KeyValueStore) -> None:
    store = PriceListStore(kv)
    assert [price_list.name for price_list in store.lists] == [ALL_LIST_NAME]
    assert _content(store.all_items()) == _content(default_price_list().items)
    assert kv.get("priceLists")[0]["name"] == ALL_LIST_NAME


def test_lists_roundtrip_through_store(kv: KeyValueStore) -> None:
    store = PriceListStore(kv)
    store.add_list("Vanalar", [CatalogItem("V1", "Küresel Vana", 40.0)], group="Tesisat")
    reloaded = PriceListStore(kv)
    vanalar = reloaded.get_list("Vanalar")
    assert vanalar is not None
    assert vanalar.group == "Tesisat"
    assert _content(vanalar.items) == [("V1", "Küresel Vana", 40.0)]
    assert [item.id for item in vanalar.items] == [item.id for item in store.get_list("Vanalar").items]


def test_add_list_replaces_by_name(kv: KeyValueStore) -> None:
    store = PriceListStore(kv)
    store.add_list("Vanalar", [CatalogItem("V1", "Vana", 1.0)])
    store.add_list("Vanalar", [CatalogItem("V2", "Vana 2", 2.0), CatalogItem("V3", "Vana 3", 3.0)])
    assert [price_list.name for price_list in store.lists] == [ALL_LIST_NAME, "Vanalar"]
    assert _content(store.get_list("Vanalar").items) == [("V2", "Vana 2", 2.0), ("V3", "Vana 3", 3.0)]


def test_add_list_requires_name(kv: KeyValueStore) -> None:
    with pytest.raises(ValueError):
        PriceListStore(kv).add_list("  ", [])


def test_searchable_items_scope(kv: KeyValueStore) -> None:
    store = PriceListStore(kv)
    store.add_list("Vanalar", [CatalogItem("V1", "Vana", 1.0)])
    assert len(store.searchable_items(ALL_LIST_NAME)) == 7
    assert _content(store.searchable_items("Vanalar")) == [("V1", "Vana", 1.0)]
    assert len(store.searchable_items("Yok")) == 7


def test_update_and_delete_items(kv: KeyValueStore) -> None:
    store = PriceListStore(kv)
    first = store.get_list(ALL_LIST_NAME).items[0]
    updated = store.update_item(ALL_LIST_NAME, first.id, "price", "120,5")
    assert updated.price == 120.5
    assert updated.id == first.id
    assert PriceListStore(kv).get_list(ALL_LIST_NAME).items[0].price == 120.5

    with pytest.raises(KeyError):
        store.update_item(ALL_LIST_NAME, "nope", "name", "x")

    ids = [item.id for item in store.get_list(ALL_LIST_NAME).items[:2]]
    assert store.delete_items(ALL_LIST_NAME, ids) == 2
    assert len(store.get_list(ALL_LIST_NAME).items) == 4


def test_parse_catalog_rows_skips_short_rows() -> None:
    items = parse_catalog_rows([["Kod", "Ad"], ["P010", "Boru 40", "abc"], [101.0, "Manşon", 12.5], []])
    assert _content(items) == [("P010", "Boru 40", 0.0), ("101", "Manşon", 12.5)]


def test_archive_most_recent_first(kv: KeyValueStore) -> None:
    archive = OfferArchive(kv)
    archive.add({"title": "Teklif #1"})
    archive.add({"title": "Teklif #2"})
    assert [entry["title"] for entry in OfferArchive(kv).entries] == ["Teklif #2", "Teklif #1"]
