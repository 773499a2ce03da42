from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List
from uuid import uuid4

from babel.numbers import format_currency

from teklif.shared.numbers import parse_number

DEFAULT_DISCOUNT_PCT = 0.0
DEFAULT_VAT_PCT = 20.0
CURRENCY = "TRY"
CURRENCY_LOCALE = "tr_TR"

# field name in the persisted/HTTP shape -> OrderLine attribute
EDITABLE_FIELDS = {
    "quantity": "quantity",
    "unitPrice": "unit_price",
    "discount": "discount_pct",
    "vat": "vat_pct",
}


@dataclass
class OrderLine:
    code: str
    name: str
    quantity: float = 1.0
    unit_price: float = 0.0
    discount_pct: float = DEFAULT_DISCOUNT_PCT
    vat_pct: float = DEFAULT_VAT_PCT
    id: str = field(default_factory=lambda: str(uuid4()))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderLine":
        line = cls(
            code=str(data.get("code") or ""),
            name=str(data.get("name") or ""),
            quantity=parse_number(data.get("quantity")),
            unit_price=parse_number(data.get("unitPrice")),
            discount_pct=parse_number(data.get("discount")),
            vat_pct=parse_number(data.get("vat")),
        )
        if data.get("id"):
            line.id = str(data["id"])
        return line

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "discount": self.discount_pct,
            "vat": self.vat_pct,
        }


@dataclass(frozen=True)
class LineBreakdown:
    raw: float
    after_line_discount: float
    after_global: float
    vat_amount: float
    total: float


@dataclass(frozen=True)
class PricingTotals:
    subtotal: float = 0.0
    vat_total: float = 0.0
    total_after_discount: float = 0.0
    maturity_adjustment: float = 0.0
    grand_total: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "subtotal": self.subtotal,
            "vatTotal": self.vat_total,
            "totalAfterDiscount": self.total_after_discount,
            "maturityAdjustment": self.maturity_adjustment,
            "grandTotal": self.grand_total,
        }


def compute_line(line: OrderLine, global_discount_pct: Any = 0.0) -> LineBreakdown:
    """Price one order line.

    Discounts compound: the line discount applies first, the global discount
    to what is left, and VAT to the doubly discounted amount. Percentages are
    used as given; out-of-range values simply propagate.
    """
    quantity = parse_number(line.quantity)
    price = parse_number(line.unit_price)
    discount = parse_number(line.discount_pct)
    vat = parse_number(line.vat_pct)
    global_discount = parse_number(global_discount_pct)

    raw = quantity * price
    after_line_discount = raw * (1 - discount / 100)
    after_global = after_line_discount * (1 - global_discount / 100)
    vat_amount = after_global * (vat / 100)
    return LineBreakdown(
        raw=raw,
        after_line_discount=after_line_discount,
        after_global=after_global,
        vat_amount=vat_amount,
        total=after_global + vat_amount,
    )


def line_total(line: OrderLine, global_discount_pct: Any = 0.0) -> float:
    return compute_line(line, global_discount_pct).total


def aggregate(lines: Iterable[OrderLine], global_discount_pct: Any = 0.0, maturity_pct: Any = 0.0) -> PricingTotals:
    """Sum the per-line figures and apply the maturity differential.

    ``subtotal`` only reflects line discounts; the global discount shows up in
    ``total_after_discount`` and, through it, in VAT and the grand total.
    """
    subtotal = 0.0
    vat_total = 0.0
    total_after_discount = 0.0
    for line in lines:
        breakdown = compute_line(line, global_discount_pct)
        subtotal += breakdown.after_line_discount
        vat_total += breakdown.vat_amount
        total_after_discount += breakdown.after_global

    maturity_adjustment = (total_after_discount + vat_total) * (parse_number(maturity_pct) / 100)
    return PricingTotals(
        subtotal=subtotal,
        vat_total=vat_total,
        total_after_discount=total_after_discount,
        maturity_adjustment=maturity_adjustment,
        grand_total=total_after_discount + vat_total + maturity_adjustment,
    )


def line_totals(lines: Iterable[OrderLine], global_discount_pct: Any = 0.0) -> List[float]:
    return [line_total(line, global_discount_pct) for line in lines]


def format_try(value: Any) -> str:
    return format_currency(parse_number(value), CURRENCY, locale=CURRENCY_LOCALE)


def format_number(value: Any) -> str:
    number = parse_number(value)
    return str(int(number)) if number.is_integer() else str(number)


def format_percent(value: Any) -> str:
    return f"{format_number(value)}%"
