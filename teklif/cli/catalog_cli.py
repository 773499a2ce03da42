from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterable, List, Optional

from teklif.app.decoders import DecodeError, decode_workbook
from teklif.app.pricing import format_try
from teklif.shared.catalog import DEFAULT_GROUP, CatalogItem
from teklif.shared.line_extractor import extract_lines
from teklif.shared.token_matcher import EmptyCatalogError, best_match
from teklif.store import ALL_LIST_NAME, KeyValueStore, PriceListStore, parse_catalog_rows

CATALOG_HEADERS = ["code", "name", "price"]

logger = logging.getLogger("teklif.cli")


class CLIError(Exception):
    """Raised when user input is invalid."""


def _resolve_format(path: Path, explicit: Optional[str], allowed: Iterable[str]) -> str:
    if explicit:
        fmt = explicit.lower()
        if fmt not in allowed:
            raise CLIError(f"Unsupported format '{explicit}'. Allowed: {', '.join(sorted(allowed))}")
        return fmt
    suffix = path.suffix.lower()
    if suffix in (".csv", ".tsv") and "csv" in allowed:
        return "csv"
    if suffix == ".json" and "json" in allowed:
        return "json"
    if suffix in (".xlsx", ".xlsm") and "xlsx" in allowed:
        return "xlsx"
    raise CLIError("Unable to infer format from file extension. Please pass --format.")


def _csv_delimiter(path: Path) -> str:
    return "\t" if path.suffix.lower() == ".tsv" else ","


def _read_rows_from_csv(path: Path) -> List[List[Any]]:
    with path.open("r", encoding="utf-8", newline="") as handle:
        return [row for row in csv.reader(handle, delimiter=_csv_delimiter(path))]


def _read_items_from_json(path: Path) -> List[CatalogItem]:
    data = json.loads(path.read_text(encoding="utf-8") or "[]")
    if isinstance(data, dict):
        data = data.get("items", [])
    if not isinstance(data, list):
        raise CLIError("JSON payload must be a list of catalog items.")
    items: List[CatalogItem] = []
    for idx, entry in enumerate(data, start=1):
        if not isinstance(entry, dict):
            raise CLIError(f"Entry {idx} is not a JSON object.")
        if not str(entry.get("name") or "").strip():
            raise CLIError(f"Entry {idx}: 'name' is required.")
        items.append(CatalogItem.from_dict(entry))
    return items


def _read_items(path: Path, fmt: str) -> List[CatalogItem]:
    if not path.exists():
        raise CLIError(f"File not found: {path}")
    if fmt == "json":
        return _read_items_from_json(path)
    if fmt == "csv":
        return parse_catalog_rows(_read_rows_from_csv(path))
    try:
        return parse_catalog_rows(decode_workbook(path.read_bytes()))
    except DecodeError as exc:
        raise CLIError(f"Could not read workbook {path}: {exc}") from exc


def _write_items(path: Path, fmt: str, items: List[CatalogItem]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "csv":
        with path.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=CATALOG_HEADERS, delimiter=_csv_delimiter(path))
            writer.writeheader()
            for item in items:
                writer.writerow({"code": item.code, "name": item.name, "price": item.price})
    else:
        payload = [{"code": item.code, "name": item.name, "price": item.price} for item in items]
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


def _open_store(args: argparse.Namespace) -> PriceListStore:
    return PriceListStore(KeyValueStore(args.db_path))


def cmd_import_list(args: argparse.Namespace) -> None:
    path = Path(args.path)
    fmt = _resolve_format(path, args.format, {"csv", "json", "xlsx"})
    items = _read_items(path, fmt)
    store = _open_store(args)
    replaced = store.get_list(args.name) is not None
    store.add_list(args.name, items, args.group)
    action = "Replaced" if replaced else "Imported"
    print(f"{action} list '{args.name}' with {len(items)} items.")


def cmd_export_list(args: argparse.Namespace) -> None:
    path = Path(args.path)
    fmt = _resolve_format(path, args.format, {"csv", "json"})
    price_list = _open_store(args).get_list(args.name)
    if price_list is None:
        raise CLIError(f"Unknown price list '{args.name}'.")
    _write_items(path, fmt, price_list.items)
    print(f"Exported {len(price_list.items)} items to {path}.")


def cmd_list(args: argparse.Namespace) -> None:
    store = _open_store(args)
    for price_list in store.lists:
        print(f"{price_list.name} [{price_list.group}]: {len(price_list.items)} items")


def cmd_match(args: argparse.Namespace) -> None:
    store = _open_store(args)
    if args.list != ALL_LIST_NAME and store.get_list(args.list) is None:
        raise CLIError(f"Unknown price list '{args.list}'.")
    catalog = store.searchable_items(args.list)
    requests = extract_lines(args.text)
    if not requests:
        raise CLIError("Nothing to match: the text contains no lines.")
    for request in requests:
        try:
            item = best_match(request, catalog)
        except EmptyCatalogError as exc:
            raise CLIError(f"Price list '{args.list}' has no items.") from exc
        print(f"{request.query} -> {item.code} {item.name} x{request.quantity:g} @ {format_try(item.price)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage price lists in the local store.")
    parser.add_argument("--db-path", default=None, help="SQLite database file (defaults to TEKLIF_DB_PATH).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_list = subparsers.add_parser("import-list", help="Import a price list from XLSX/CSV/JSON.")
    import_list.add_argument("--name", required=True)
    import_list.add_argument("--path", required=True)
    import_list.add_argument("--group", default=DEFAULT_GROUP)
    import_list.add_argument("--format", choices=("xlsx", "csv", "json"), default=None)
    import_list.set_defaults(func=cmd_import_list)

    export_list = subparsers.add_parser("export-list", help="Export a price list.")
    export_list.add_argument("--name", required=True)
    export_list.add_argument("--path", required=True)
    export_list.add_argument("--format", choices=("csv", "json"), default=None)
    export_list.set_defaults(func=cmd_export_list)

    list_cmd = subparsers.add_parser("list", help="Show stored price lists.")
    list_cmd.set_defaults(func=cmd_list)

    match = subparsers.add_parser("match", help="Match free text against a price list.")
    match.add_argument("text")
    match.add_argument("--list", default=ALL_LIST_NAME)
    match.set_defaults(func=cmd_match)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except CLIError as exc:
        logger.debug("cli.error command=%s: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
