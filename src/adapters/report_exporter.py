"""Report export (HTML/PDF).

Why it lives in adapters:
- PDF/HTML are infrastructure details (WeasyPrint/Jinja2).
- The core only knows `BillingReport` and the partner handover details.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.domain.models import BillingReport
from core.services.partner import PartnerDetails

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def _get_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
    )
    env.filters["money"] = lambda value: f"${value:,.2f}"
    env.filters["hours"] = lambda value: f"{value:,.2f}"
    return env


def _write_pdf(html: str, output_path: Path) -> Path:
    # Imported lazily: WeasyPrint needs native libraries (Pango) that may be
    # missing; HTML export keeps working without them.
    from weasyprint import HTML  # noqa: PLC0415

    output_path.parent.mkdir(parents=True, exist_ok=True)
    HTML(string=html, base_url=str(_TEMPLATES_DIR)).write_pdf(str(output_path))
    return output_path


def render_billing_html(*, report: BillingReport) -> str:
    """Self-contained HTML of a billing report."""

    template = _get_env().get_template("billing.html")
    return template.render(
        report=report,
        generated_at=report.generated_at.isoformat(timespec="seconds"),
    )


def export_billing_html(*, report: BillingReport, output_path: Path) -> Path:
    """Fallback when PDF rendering is not supported by the environment."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_billing_html(report=report), encoding="utf-8")
    return output_path


def export_billing_pdf(*, report: BillingReport, output_path: Path) -> Path:
    return _write_pdf(render_billing_html(report=report), output_path)


def render_partner_details_html(*, details: PartnerDetails) -> str:
    template = _get_env().get_template("partner_details.html")
    return template.render(
        details=details,
        result=details.result,
        generated_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
    )


def export_partner_details_html(*, details: PartnerDetails, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_partner_details_html(details=details), encoding="utf-8")
    return output_path


def export_partner_details_pdf(*, details: PartnerDetails, output_path: Path) -> Path:
    """PDF of the partner handover message.

    Synchronous: WeasyPrint is local CPU/IO work.
    """

    return _write_pdf(render_partner_details_html(details=details), output_path)
