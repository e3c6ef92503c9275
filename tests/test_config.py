from config import Settings
from tax_calc import DiscountMode, OverallDiscountStage


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.discount_mode is DiscountMode.ABSOLUTE
    assert settings.overall_discount_stage is OverallDiscountStage.POST_TAX
    assert settings.clamp_discounts is True
    assert settings.gst_rates == [0.0, 5.0, 12.0, 18.0, 28.0]


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("INVOICE_DISCOUNT_MODE", "PERCENT")
    monkeypatch.setenv("INVOICE_OVERALL_DISCOUNT_STAGE", "PRE_TAX")
    monkeypatch.setenv("INVOICE_CLAMP_DISCOUNTS", "false")
    settings = Settings(_env_file=None)
    assert settings.discount_mode is DiscountMode.PERCENT
    assert settings.overall_discount_stage is OverallDiscountStage.PRE_TAX
    assert settings.clamp_discounts is False
