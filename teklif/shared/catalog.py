from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List
from uuid import uuid4

from teklif.shared.numbers import parse_number

DEFAULT_GROUP = "Genel"


def _new_id() -> str:
    return str(uuid4())


@dataclass(frozen=True)
class CatalogItem:
    code: str
    name: str
    price: float = 0.0
    id: str = field(default_factory=_new_id, compare=False)

    @property
    def search_text(self) -> str:
        return f"{self.code} {self.name}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogItem":
        item_id = data.get("id")
        return cls(
            code=cell_text(data.get("code")),
            name=cell_text(data.get("name")),
            price=parse_number(data.get("price")),
            id=str(item_id) if item_id else _new_id(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "code": self.code, "name": self.name, "price": self.price}


@dataclass
class PriceList:
    name: str
    group: str = DEFAULT_GROUP
    items: List[CatalogItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriceList":
        return cls(
            name=str(data.get("name") or ""),
            group=str(data.get("group") or DEFAULT_GROUP),
            items=[CatalogItem.from_dict(entry) for entry in data.get("items") or [] if isinstance(entry, dict)],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "group": self.group, "items": [item.to_dict() for item in self.items]}


def cell_text(value: Any) -> str:
    """Render a decoded spreadsheet cell as text; whole floats lose their ``.0``."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
