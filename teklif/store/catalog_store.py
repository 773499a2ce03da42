from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from teklif.shared.catalog import DEFAULT_GROUP, CatalogItem, PriceList
from teklif.shared.numbers import parse_number
from teklif.store.kv_store import KeyValueStore

PRICE_LISTS_KEY = "priceLists"
ARCHIVE_KEY = "offerArchive"
ALL_LIST_NAME = "Hepsi"
MIN_CATALOG_ROW_CELLS = 3

DEFAULT_PRICE_LIST: Dict[str, Any] = {
    "name": ALL_LIST_NAME,
    "group": DEFAULT_GROUP,
    "items": [
        {"code": "P001", "name": "PPRC 32 Boru", "price": 100},
        {"code": "P002", "name": "PPRC 25 Boru", "price": 72.5},
        {"code": "P003", "name": "PP-RC Dirsek 32", "price": 21.35},
        {"code": "P004", "name": "PP-RC Dirsek 25", "price": 16.2},
        {"code": "P005", "name": 'Vanalar 1/2"', "price": 55.9},
        {"code": "P006", "name": "Temiz Su Kolektörü", "price": 312.4},
    ],
}

EDITABLE_ITEM_FIELDS = ("code", "name", "price")


def default_price_list() -> PriceList:
    return PriceList.from_dict(DEFAULT_PRICE_LIST)


def parse_catalog_rows(rows: Iterable[Sequence[Any]]) -> List[CatalogItem]:
    """Build catalog items from decoded spreadsheet rows.

    Rows with fewer than three cells are skipped; the remaining ones map to
    ``code``, ``name`` and ``price`` (non-numeric prices become 0).
    """
    items: List[CatalogItem] = []
    for row in rows:
        cells = list(row)
        if len(cells) < MIN_CATALOG_ROW_CELLS:
            continue
        items.append(CatalogItem.from_dict({"code": cells[0], "name": cells[1], "price": cells[2]}))
    return items


class PriceListStore:
    """Named price lists persisted as one JSON document under ``priceLists``."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv
        stored = kv.get(PRICE_LISTS_KEY)
        if isinstance(stored, list) and stored:
            self.lists = [PriceList.from_dict(entry) for entry in stored if isinstance(entry, dict)]
        else:
            self.lists = [default_price_list()]
        # item ids are assigned on load, write them back so edits can address them
        self.persist()

    def persist(self) -> None:
        self.kv.set(PRICE_LISTS_KEY, [price_list.to_dict() for price_list in self.lists])

    def add_list(self, name: str, items: Iterable[CatalogItem], group: str = DEFAULT_GROUP) -> PriceList:
        name = (name or "").strip()
        if not name:
            raise ValueError("Price list name must be non-empty.")
        new_list = PriceList(name=name, group=(group or "").strip() or DEFAULT_GROUP, items=list(items))
        for idx, existing in enumerate(self.lists):
            if existing.name == name:
                self.lists[idx] = new_list
                break
        else:
            self.lists.append(new_list)
        self.persist()
        return new_list

    def get_list(self, name: Optional[str]) -> Optional[PriceList]:
        return next((price_list for price_list in self.lists if price_list.name == name), None)

    def all_items(self) -> List[CatalogItem]:
        return [item for price_list in self.lists for item in price_list.items]

    def searchable_items(self, active_name: Optional[str]) -> List[CatalogItem]:
        """Return the catalog the matcher should search for *active_name*.

        The ``Hepsi`` list stands for every list at once. Unknown names fall
        back to the stored ``Hepsi`` list, or the built-in default.
        """
        selected = self.get_list(active_name) or self.get_list(ALL_LIST_NAME) or default_price_list()
        if selected.name == ALL_LIST_NAME:
            return self.all_items()
        return list(selected.items)

    def update_item(self, list_name: str, item_id: str, field: str, value: Any) -> CatalogItem:
        if field not in EDITABLE_ITEM_FIELDS:
            raise ValueError(f"Unsupported field '{field}'.")
        price_list = self.get_list(list_name)
        if price_list is None:
            raise KeyError(list_name)
        for idx, item in enumerate(price_list.items):
            if item.id != item_id:
                continue
            data = item.to_dict()
            data[field] = parse_number(value) if field == "price" else ("" if value is None else str(value))
            updated = CatalogItem.from_dict(data)
            price_list.items[idx] = updated
            self.persist()
            return updated
        raise KeyError(item_id)

    def delete_items(self, list_name: str, item_ids: Iterable[str]) -> int:
        price_list = self.get_list(list_name)
        if price_list is None:
            raise KeyError(list_name)
        doomed = set(item_ids)
        before = len(price_list.items)
        price_list.items = [item for item in price_list.items if item.id not in doomed]
        removed = before - len(price_list.items)
        if removed:
            self.persist()
        return removed


class OfferArchive:
    """Generated offers, most recent first, persisted under ``offerArchive``."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv
        stored = kv.get(ARCHIVE_KEY)
        self.entries: List[Dict[str, Any]] = list(stored) if isinstance(stored, list) else []

    def __len__(self) -> int:
        return len(self.entries)

    def add(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        self.entries.insert(0, entry)
        self.persist()
        return entry

    def persist(self) -> None:
        self.kv.set(ARCHIVE_KEY, self.entries)
