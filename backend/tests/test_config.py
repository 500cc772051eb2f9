from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from expertiz.config import DEFAULT_CREDIT_PACKAGES, DEFAULT_REPORT_PRICES, CreditPackage, Settings


def _prices(**overrides: Decimal) -> dict[str, Decimal]:
    prices = dict(DEFAULT_REPORT_PRICES)
    prices.update(overrides)
    return prices


def test_defaults_cover_every_report_type() -> None:
    settings = Settings(ai_provider="fake")

    assert set(settings.report_prices) == set(DEFAULT_REPORT_PRICES)
    assert settings.report_prices["full_report"] == Decimal("179.00")


def test_prices_are_quantized() -> None:
    settings = Settings(ai_provider="fake", report_prices=_prices(paint_analysis=Decimal("300")))

    assert settings.report_prices["paint_analysis"] == Decimal("300.00")
    assert str(settings.report_prices["paint_analysis"]) == "300.00"


def test_missing_price_is_rejected() -> None:
    prices = _prices()
    del prices["value_estimation"]

    with pytest.raises(ValidationError, match="value_estimation"):
        Settings(ai_provider="fake", report_prices=prices)


def test_unknown_report_type_price_is_rejected() -> None:
    with pytest.raises(ValidationError, match="tire_analysis"):
        Settings(ai_provider="fake", report_prices=_prices(tire_analysis=Decimal("10")))


def test_non_positive_price_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(ai_provider="fake", report_prices=_prices(full_report=Decimal("0")))


def test_openai_provider_requires_api_key() -> None:
    with pytest.raises(ValidationError, match="AI_API_KEY"):
        Settings(ai_provider="openai", ai_api_key="")

    assert Settings(ai_provider="OpenAI", ai_api_key="sk-test").ai_provider == "openai"


def test_unknown_provider_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(ai_provider="mystery")


def test_stale_threshold_must_cover_analysis_timeout() -> None:
    with pytest.raises(ValidationError, match="report_stale_after_seconds"):
        Settings(ai_provider="fake", analysis_timeout=600, report_stale_after_seconds=300)


def test_negative_signup_credits_are_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(ai_provider="fake", initial_credits=Decimal("-1"))


def test_comma_separated_lists_are_parsed() -> None:
    settings = Settings(
        ai_provider="fake",
        cors_origins="http://a.test, http://b.test,",
        allowed_image_types="image/png , image/jpeg",
    )

    assert settings.cors_origins_list == ["http://a.test", "http://b.test"]
    assert settings.allowed_image_types_list == ["image/png", "image/jpeg"]


def test_default_credit_packages_carry_bonus() -> None:
    settings = Settings(ai_provider="fake")

    assert set(settings.credit_packages) == set(DEFAULT_CREDIT_PACKAGES)
    assert settings.credit_packages["professional"].bonus == Decimal("101.00")
    assert settings.ai_transcription_model == "whisper-1"


def test_package_granting_less_than_its_price_is_rejected() -> None:
    packages = {"odd": CreditPackage(price=Decimal("100"), credits=Decimal("90"))}

    with pytest.raises(ValidationError, match="odd"):
        Settings(ai_provider="fake", credit_packages=packages)


def test_empty_package_table_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(ai_provider="fake", credit_packages={})
