"""Application settings.

Values come from environment variables prefixed with ``INVOICE_`` (or a
``.env`` file next to the app). :func:`get_settings` caches the result so the
Streamlit reruns do not re-read the environment on every widget change.
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tax_calc import DiscountMode, OverallDiscountStage


class Settings(BaseSettings):
    """Invoicing behaviour and presentation defaults."""

    model_config = SettingsConfigDict(env_prefix="INVOICE_", env_file=".env", extra="ignore")

    page_title: str = "GST Invoice Workbench"
    # ABSOLUTE matches the create form and the stored totals; the legacy
    # edit screen entered discounts as PERCENT.
    discount_mode: DiscountMode = DiscountMode.ABSOLUTE
    overall_discount_stage: OverallDiscountStage = OverallDiscountStage.POST_TAX
    clamp_discounts: bool = True
    default_gst_rate: float = 18.0
    gst_rates: List[float] = Field(default_factory=lambda: [0.0, 5.0, 12.0, 18.0, 28.0])
    currency_symbol: str = "₹"
    invoice_prefix: str = "INV"
    default_template: str = "Standard"
    customer_search_cutoff: int = 60
    logo_max_px: int = 240
    log_level: str = "INFO"
    log_json: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
