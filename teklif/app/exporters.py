"""Render the current offer to spreadsheet, Word and PDF downloads."""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, List, Sequence

from jinja2 import Environment
from openpyxl import Workbook
from openpyxl.styles import Font

from teklif.app.pdf import WORD_TEMPLATE, render_html, render_pdf_from_template
from teklif.app.pricing import OrderLine, PricingTotals, format_number, format_percent, format_try, line_total

SHEET_TITLE = "Teklif"
HEADERS = ["Ürün Kodu", "Ürün Adı", "Adet", "Birim Fiyat", "İskonto", "KDV", "Toplam"]


@dataclass(frozen=True)
class ExportFormat:
    filename: str
    media_type: str


EXPORT_FORMATS: Dict[str, ExportFormat] = {
    "xlsx": ExportFormat("teklif.xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
    "pdf": ExportFormat("teklif.pdf", "application/pdf"),
    "doc": ExportFormat("teklif.doc", "application/msword"),
}


def build_export_context(
    lines: Sequence[OrderLine],
    totals: PricingTotals,
    *,
    global_discount_pct: float,
    maturity_pct: float,
    payment_type: str,
) -> Dict[str, Any]:
    rows: List[Dict[str, Any]] = []
    for index, line in enumerate(lines, start=1):
        rows.append(
            {
                "index": index,
                "code": line.code,
                "name": line.name,
                "quantity": format_number(line.quantity),
                "unit_price": format_number(line.unit_price),
                "discount": line.discount_pct,
                "vat": line.vat_pct,
                "total": line_total(line, global_discount_pct),
            }
        )
    return {
        "title": SHEET_TITLE,
        "headers": HEADERS,
        "rows": rows,
        "totals": totals.to_dict(),
        "payment": payment_type,
        "global_discount": global_discount_pct,
        "maturity": maturity_pct,
    }


def export_xlsx(context: Dict[str, Any]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE
    sheet.append(context["headers"])
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for row in context["rows"]:
        sheet.append(
            [
                row["code"],
                row["name"],
                float(row["quantity"]),
                float(row["unit_price"]),
                format_percent(row["discount"]),
                format_percent(row["vat"]),
                format_try(row["total"]),
            ]
        )
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def export_doc(env: Environment, context: Dict[str, Any]) -> bytes:
    """Word-compatible HTML document, UTF-8 with a leading BOM."""
    html = render_html(env, WORD_TEMPLATE, context)
    return ("\ufeff" + html).encode("utf-8")


def export_pdf(env: Environment, context: Dict[str, Any]) -> bytes:
    return render_pdf_from_template(env, context)


def render_export(kind: str, env: Environment, context: Dict[str, Any]) -> bytes:
    if kind == "xlsx":
        return export_xlsx(context)
    if kind == "doc":
        return export_doc(env, context)
    if kind == "pdf":
        return export_pdf(env, context)
    raise ValueError(f"Unsupported export format '{kind}'.")
