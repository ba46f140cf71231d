import pytest

from core.config import AppSettings, write_user_env_vars
from core.domain.regions import Region


def test_write_user_env_vars_merges_existing_values(tmp_path):
    env_path = tmp_path / "nested" / ".env"
    env_path.parent.mkdir()
    env_path.write_text('# old\nSKYTAP_USER="alice"\nSKYTAP_TOKEN=old\nnot a pair\n', encoding="utf-8")

    written = write_user_env_vars({"SKYTAP_TOKEN": "new", "SKYTAP_CUSTOMER_ID": "42"}, env_path=env_path)

    assert written == env_path
    assert env_path.read_text(encoding="utf-8").splitlines() == [
        "# skytap-console user config (.env)",
        "SKYTAP_CUSTOMER_ID=42",
        "SKYTAP_TOKEN=new",
        "SKYTAP_USER=alice",
    ]


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("SKYTAP_USER", "bob")
    monkeypatch.setenv("SKYTAP_TOKEN", "t0k3n")
    monkeypatch.setenv("SKYTAP_PARTNER_ENDPOINTS", '{"Store": "https://store"}')

    settings = AppSettings(_env_file=None)

    assert settings.has_credentials
    assert settings.partner_endpoints == {"Store": "https://store"}
    assert settings.partner_ip2_hosts == ["es-db2-live.hclcomdev.com"]


def test_missing_credentials(monkeypatch):
    monkeypatch.delenv("SKYTAP_USER", raising=False)
    monkeypatch.delenv("SKYTAP_TOKEN", raising=False)
    assert not AppSettings(_env_file=None).has_credentials


def test_partner_template_for_region(settings):
    assert settings.partner_template_for(Region.US_CENTRAL) == "tpl-us"
    assert settings.partner_template_for(Region.EMEA) == "tpl-emea"
    assert settings.partner_template_for(Region.APAC) is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("US-Central", Region.US_CENTRAL),
        ("us_central", Region.US_CENTRAL),
        (" emea ", Region.EMEA),
        ("APAC", Region.APAC),
        ("apac-2", Region.APAC),
    ],
)
def test_region_parse(raw, expected):
    assert Region.parse(raw) is expected


def test_region_parse_rejects_unknown():
    with pytest.raises(ValueError, match="Unknown region"):
        Region.parse("mars")
    assert Region.default() is Region.US_CENTRAL
    assert Region.EMEA.label() == "EMEA"
    assert str(Region.APAC) == "APAC-2"
