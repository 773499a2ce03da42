from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, select_autoescape

from teklif.app.pricing import format_percent, format_try

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"
PDF_TEMPLATE = "offer_pdf.html"
WORD_TEMPLATE = "offer_doc.html"


def setup_jinja_env(templates_dir: Path = TEMPLATES_DIR) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=select_autoescape(["html"]),
    )
    env.filters["currency"] = format_try
    env.filters["percent"] = format_percent
    return env


def render_html(env: Environment, template_file: str, context: Dict[str, Any]) -> str:
    return env.get_template(template_file).render(**context)


def _load_weasyprint():
    try:
        from weasyprint import HTML
    except (ImportError, OSError) as exc:
        # weasyprint needs cairo/pango on the host; OSError covers a missing shared library
        raise RuntimeError(
            "weasyprint is not available. Install it with: pip install weasyprint\n"
            "Note: weasyprint requires system dependencies (cairo, pango, etc.)"
        ) from exc
    return HTML


def render_pdf_from_template(env: Environment, context: Dict[str, Any], template_file: str = PDF_TEMPLATE) -> bytes:
    """Render the offer HTML with Jinja and convert it to PDF bytes."""
    html_cls = _load_weasyprint()
    html_str = render_html(env, template_file, context)
    return html_cls(string=html_str, base_url=str(TEMPLATES_DIR)).write_pdf()
