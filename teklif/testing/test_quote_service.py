from __future__ import annotations

import logging
import threading
from datetime import datetime
from io import BytesIO

import pytest
from openpyxl import Workbook

import teklif.app.services.quote_service as qs
from teklif.app import error_messages
from teklif.app.decoders import DecodeError
from teklif.app.services.quote_service import (
    ServiceError,
    add_empty_item,
    add_item,
    build_order_lines,
    compute_totals,
    convert_from_text,
    delete_item,
    delete_selected,
    export_offer,
    generate_offer,
    import_image,
    import_price_list,
    import_spreadsheet,
    list_price_lists,
    reset_session,
    select_item,
    session_snapshot,
    update_item_field,
    update_settings,
)
from teklif.shared.catalog import CatalogItem
from teklif.shared.token_matcher import EmptyCatalogError
from teklif.store import default_price_list


def _xlsx(rows) -> bytes:
    workbook = Workbook()
    for row in rows:
        workbook.active.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_build_order_lines_pipeline() -> None:
    lines = build_order_lines("3 adet P001, 2x P002", default_price_list().items)
    assert [(line.code, line.quantity, line.unit_price) for line in lines] == [("P001", 3.0, 100.0), ("P002", 2.0, 72.5)]
    assert all(line.discount_pct == 0 and line.vat_pct == 20 for line in lines)


def test_build_order_lines_blank_text_skips_catalog() -> None:
    assert build_order_lines("  ,\n", []) == []


def test_build_order_lines_empty_catalog() -> None:
    with pytest.raises(EmptyCatalogError):
        build_order_lines("boru", [])


def test_materialize_zero_quantity_defaults_to_one() -> None:
    lines = build_order_lines("0 adet P003", default_price_list().items)
    assert lines[0].quantity == 1.0
    assert lines[0].code == "P003"


def test_convert_from_text_appends_and_logs(ctx, caplog) -> None:
    caplog.set_level(logging.INFO, logger="teklif.test")
    result = convert_from_text(text="3 adet P001\ntemiz su kolektörü", ctx=ctx)
    assert result["message"] == error_messages.CONVERTED_FROM_TEXT
    assert [line.code for line in ctx.session.items] == ["P001", "P006"]
    assert any("offer.convert" in record.getMessage() for record in caplog.records)

    convert_from_text(text="P002", ctx=ctx)
    assert [line.code for line in ctx.session.items] == ["P001", "P006", "P002"]


def test_convert_blank_text_is_noop(ctx) -> None:
    result = convert_from_text(text="   ", ctx=ctx)
    assert result == {"added": [], "message": error_messages.EMPTY_REQUEST_TEXT}
    assert ctx.session.items == []


def test_convert_against_empty_list_fails(ctx) -> None:
    ctx.price_lists.add_list("Boş", [])
    update_settings(payload={"activeList": "Boş"}, ctx=ctx)
    with pytest.raises(ServiceError) as exc:
        convert_from_text(text="boru", ctx=ctx)
    assert exc.value.status_code == 409
    assert ctx.session.items == []


def test_active_list_scopes_matching(ctx) -> None:
    ctx.price_lists.add_list("Vanalar", [CatalogItem("V1", "Küresel Vana", 40.0)])
    update_settings(payload={"activeList": "Vanalar"}, ctx=ctx)
    convert_from_text(text="PPRC 32 Boru", ctx=ctx)
    assert ctx.session.items[0].code == "V1"


def test_unknown_active_list(ctx) -> None:
    with pytest.raises(ServiceError) as exc:
        update_settings(payload={"activeList": "Yok"}, ctx=ctx)
    assert exc.value.status_code == 404


def test_import_spreadsheet(ctx) -> None:
    data = _xlsx([["4 adet P004"], ["Vanalar"]])
    result = import_spreadsheet(data=data, filename="talep.xlsx", ctx=ctx)
    assert result["message"] == error_messages.file_loaded("talep.xlsx")
    assert result["text"] == "4 adet P004\nVanalar"
    assert [(line.code, line.quantity) for line in ctx.session.items] == [("P004", 4.0), ("P005", 1.0)]


def test_import_spreadsheet_unreadable(ctx) -> None:
    with pytest.raises(ServiceError) as exc:
        import_spreadsheet(data=b"garbage", filename="bozuk.xlsx", ctx=ctx)
    assert exc.value.status_code == 422
    assert exc.value.message == error_messages.file_unreadable("bozuk.xlsx")


def test_import_image_failure_message(ctx, monkeypatch) -> None:
    def broken(data, lang, tesseract_cmd):
        raise DecodeError("no tesseract")

    monkeypatch.setattr(qs, "recognize_image", broken)
    with pytest.raises(ServiceError) as exc:
        import_image(data=b"png", filename="foto.png", ctx=ctx)
    assert exc.value.message == error_messages.IMAGE_FAILED
    assert not ctx.session.decode_lock.locked()


def test_import_image_uses_configured_language(ctx, monkeypatch) -> None:
    seen = {}

    def fake(data, lang, tesseract_cmd):
        seen["lang"] = lang
        return "2 P006"

    ctx.ocr_lang = "tur+eng"
    monkeypatch.setattr(qs, "recognize_image", fake)
    result = import_image(data=b"png", filename="foto.png", ctx=ctx)
    assert seen["lang"] == "tur+eng"
    assert result["message"] == error_messages.file_converted("foto.png")
    assert ctx.session.items[0].code == "P006"


def test_concurrent_decode_is_rejected(ctx, monkeypatch) -> None:
    started = threading.Event()
    release = threading.Event()

    def slow(data, lang, tesseract_cmd):
        started.set()
        release.wait(timeout=5)
        return "P001"

    monkeypatch.setattr(qs, "recognize_image", slow)
    worker = threading.Thread(target=import_image, kwargs={"data": b"", "filename": "a.png", "ctx": ctx})
    worker.start()
    assert started.wait(timeout=5)
    try:
        with pytest.raises(ServiceError) as exc:
            import_image(data=b"", filename="b.png", ctx=ctx)
        assert exc.value.status_code == 409
    finally:
        release.set()
        worker.join(timeout=5)
    assert [line.code for line in ctx.session.items] == ["P001"]


def test_line_editing_flow(ctx) -> None:
    line = add_item(data={"code": "X", "name": "Özel", "quantity": "2", "unitPrice": "10,5"}, ctx=ctx)
    assert (line.quantity, line.unit_price, line.vat_pct) == (2.0, 10.5, 20.0)

    result = update_item_field(item_id=line.id, field_name="discount", value="50", ctx=ctx)
    assert result["lineTotal"] == pytest.approx(2 * 10.5 * 0.5 * 1.2)

    result = update_item_field(item_id=line.id, field_name="quantity", value="abc", ctx=ctx)
    assert result["lineTotal"] == 0

    with pytest.raises(ServiceError):
        update_item_field(item_id=line.id, field_name="code", value="Y", ctx=ctx)

    empty = add_empty_item(ctx=ctx)
    assert empty.name == qs.EMPTY_ITEM_NAME
    assert select_item(item_id=empty.id, ctx=ctx) == empty.id
    assert select_item(item_id=empty.id, ctx=ctx) is None
    select_item(item_id=empty.id, ctx=ctx)
    assert delete_selected(ctx=ctx) is empty
    assert delete_selected(ctx=ctx) is None

    delete_item(item_id=line.id, ctx=ctx)
    assert ctx.session.items == []
    with pytest.raises(ServiceError) as exc:
        delete_item(item_id=line.id, ctx=ctx)
    assert exc.value.status_code == 404


def test_totals_follow_settings(ctx) -> None:
    add_item(data={"code": "P001", "name": "Boru", "quantity": 10, "unitPrice": 100, "discount": 10}, ctx=ctx)
    update_settings(payload={"globalDiscount": 5, "maturityDiff": 2, "paymentType": "Vadeli"}, ctx=ctx)
    per_line, totals = compute_totals(ctx.session)
    assert per_line == [pytest.approx(1026)]
    assert totals.grand_total == pytest.approx(1026 * 1.02)

    snapshot = session_snapshot(ctx=ctx)
    assert snapshot["paymentType"] == "Vadeli"
    assert snapshot["items"][0]["lineTotal"] == pytest.approx(1026)
    assert set(snapshot["totalsText"]) == set(snapshot["totals"])


def test_generate_offer_archives_most_recent_first(ctx) -> None:
    with pytest.raises(ServiceError) as exc:
        generate_offer(ctx=ctx)
    assert exc.value.message == error_messages.EMPTY_OFFER

    convert_from_text(text="P001", ctx=ctx)
    first = generate_offer(ctx=ctx, now=datetime(2024, 5, 1, 9, 30, 0))["offer"]
    update_settings(payload={"maturityDiff": 10}, ctx=ctx)
    result = generate_offer(ctx=ctx)
    second = result["offer"]

    assert first["title"] == "Teklif #1"
    assert first["date"] == "01.05.2024 09:30:00"
    assert first["grandTotal"] == pytest.approx(120)
    assert second["title"] == "Teklif #2"
    assert second["grandTotal"] == pytest.approx(120)
    assert result["message"] == error_messages.offer_created(qs.format_try(132))
    assert [entry["title"] for entry in ctx.archive.entries] == ["Teklif #2", "Teklif #1"]
    assert ctx.price_lists.kv.get("offerArchive")[0]["title"] == "Teklif #2"


def test_archive_keeps_newest_offer_at_index_zero(ctx) -> None:
    convert_from_text(text="P001", ctx=ctx)
    generate_offer(ctx=ctx)
    convert_from_text(text="2 P002", ctx=ctx)
    generate_offer(ctx=ctx)
    update_settings(payload={"globalDiscount": 50}, ctx=ctx)
    third = generate_offer(ctx=ctx)["offer"]

    titles = [entry["title"] for entry in ctx.archive.entries]
    assert titles == ["Teklif #3", "Teklif #2", "Teklif #1"]
    assert ctx.archive.entries[0] == third
    assert [len(entry["items"]) for entry in ctx.archive.entries] == [2, 2, 1]
    assert third["grandTotal"] == pytest.approx((100 + 145) * 0.5 * 1.2)


def test_export_offer(ctx) -> None:
    with pytest.raises(ServiceError):
        export_offer(kind="xlsx", ctx=ctx)
    convert_from_text(text="P001", ctx=ctx)
    payload, fmt = export_offer(kind="xlsx", ctx=ctx)
    assert fmt.filename == "teklif.xlsx"
    assert payload[:2] == b"PK"
    with pytest.raises(ServiceError):
        export_offer(kind="odt", ctx=ctx)


def test_export_pdf_unavailable_maps_to_503(ctx, monkeypatch) -> None:
    def unavailable(kind, env, context):
        raise RuntimeError("weasyprint is not available")

    monkeypatch.setattr(qs, "render_export", unavailable)
    convert_from_text(text="P001", ctx=ctx)
    with pytest.raises(ServiceError) as exc:
        export_offer(kind="pdf", ctx=ctx)
    assert exc.value.status_code == 503


def test_reset_session_keeps_settings(ctx) -> None:
    convert_from_text(text="P001", ctx=ctx)
    update_settings(payload={"globalDiscount": 5}, ctx=ctx)
    assert reset_session(ctx=ctx)["ok"] is True
    assert ctx.session.items == []
    assert ctx.session.global_discount_pct == 5


def test_import_price_list(ctx) -> None:
    data = _xlsx([["K1", "Kolektör 4'lü", 250], ["K2", "Kolektör 6'lı", 320], ["eksik"]])
    result = import_price_list(name="Kolektörler", group="Tesisat", data=data, filename="k.xlsx", ctx=ctx)
    assert result["message"] == error_messages.list_saved("Kolektörler", 2)
    summaries = {entry["name"]: entry for entry in list_price_lists(ctx=ctx)}
    assert summaries["Kolektörler"] == {"name": "Kolektörler", "group": "Tesisat", "count": 2}

    with pytest.raises(ServiceError) as exc:
        import_price_list(name="", group=None, data=data, filename="k.xlsx", ctx=ctx)
    assert exc.value.message == error_messages.LIST_NAME_AND_FILE_REQUIRED


def test_export_keeps_copy_in_output_dir(ctx, tmp_path) -> None:
    ctx.output_dir = tmp_path / "outputs"
    convert_from_text(text="P001", ctx=ctx)
    payload, _ = export_offer(kind="doc", ctx=ctx)
    assert (ctx.output_dir / "teklif.doc").read_bytes() == payload
