import json
from datetime import datetime, timezone

from adapters.json_exporter import export_model_json
from adapters.report_exporter import (
    export_billing_html,
    export_partner_details_html,
    render_billing_html,
    render_partner_details_html,
)
from core.domain.models import BillingReport, DeploymentResult, MonthlyBreakdown
from core.services.partner import PartnerDetails


def _report() -> BillingReport:
    return BillingReport(
        period="1/1/2024 - 1/31/2024",
        customer_id="123",
        x86_ram_hours=1234.5,
        x86_ram_rate=0.03861,
        x86_ram_cost=47.663,
        storage_hours=10,
        storage_rate=0.00011,
        storage_cost=0.0011,
        total_cost=47.6641,
        monthly_breakdown=[MonthlyBreakdown(period="January", x86_ram_hours=1234.5, total_cost=47.66)],
        generated_at=datetime(2024, 2, 1, tzinfo=timezone.utc),
    )


def test_billing_html_formats_money_and_hours(tmp_path):
    html = render_billing_html(report=_report())

    assert "Customer 123" in html
    assert "1,234.50" in html
    assert "$47.66" in html
    assert "Monthly Breakdown" in html
    assert "2024-02-01T00:00:00+00:00" in html

    out = export_billing_html(report=_report(), output_path=tmp_path / "out" / "billing.html")
    assert out.read_text(encoding="utf-8") == html


def test_partner_details_html_escapes_and_skips_empty_sections(tmp_path):
    details = PartnerDetails(
        partner_name="Acme <Labs>",
        result=DeploymentResult(
            project_id="p",
            template_id="t",
            environment_id="env-1",
            environment_name="HCL Commerce+ Partner - Acme",
            ip1="1.1.1.1",
            portal_id="ps-1",
        ),
        ip1_hosts=["es-db2.hclcomdev.com"],
    )

    html = render_partner_details_html(details=details)

    assert "Acme &lt;Labs&gt;" in html
    assert "es-db2.hclcomdev.com" in html
    assert "Portal Information" not in html
    assert "Credentials" not in html

    out = export_partner_details_html(details=details, output_path=tmp_path / "details.html")
    assert out.exists()


def test_export_model_json(tmp_path):
    out = export_model_json(model=_report(), output_path=tmp_path / "r" / "billing.json")
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["customer_id"] == "123"
    assert data["monthly_breakdown"][0]["period"] == "January"
    assert data["generated_at"].startswith("2024-02-01T00:00:00")
