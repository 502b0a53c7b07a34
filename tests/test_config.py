"""Tests for centralized Settings, startup validation, and get_settings cache."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from pydantic import ValidationError

from settlement.config import Settings, get_settings, validate_settings
from settlement.domain.models import EligibilityRules, InsuranceBracket
from settlement.engine.orchestrator import SettlementOrchestrator
from settlement.store.store import SettlementStore


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Clear get_settings lru_cache before each test."""
    get_settings.cache_clear()


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]


class TestSettingsDefaults:
    def test_settings_defaults(self) -> None:
        s = _settings()

        assert s.production is False
        assert s.api_port == 8000
        assert s.system_actor_id == "system"
        assert s.database_path == Path("data/settlement.db")
        assert s.metrics_provider_url == ""
        assert s.metrics_refresh_concurrency == 5
        assert s.metrics_refresh_attempts == 3
        assert s.payout_max_share is None
        assert s.metrics_refresh_jitter == 1.0
        assert s.payout_min_eligible_points == Decimal("0")
        assert s.payout_min_eligible_contribution == Decimal("0")
        assert s.payout_insurance_brackets == []

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRODUCTION", "true")
        monkeypatch.setenv("METRICS_PROVIDER_TOKEN", "tok-123")
        monkeypatch.setenv("PAYOUT_MAX_SHARE", "0.40")

        s = _settings()

        assert s.production is True
        assert s.metrics_provider_token.get_secret_value() == "tok-123"
        assert s.payout_max_share == Decimal("0.40")

    def test_token_is_masked(self) -> None:
        s = _settings(metrics_provider_token="tok-123")

        assert "tok-123" not in repr(s)

    @pytest.mark.parametrize("share", ["0", "1.01", "-0.5"])
    def test_max_share_bounds(self, share: str) -> None:
        with pytest.raises(ValidationError):
            _settings(payout_max_share=Decimal(share))

    def test_insurance_brackets_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(
            "PAYOUT_INSURANCE_BRACKETS",
            '[{"min_budget": "500", "min_submissions": 3, "min_views": 10000}]',
        )

        s = _settings()

        assert s.payout_insurance_brackets == [
            InsuranceBracket(min_budget=Decimal("500"), min_submissions=3, min_views=10000)
        ]

    @pytest.mark.parametrize("contribution", ["-0.1", "1.5"])
    def test_min_contribution_bounds(self, contribution: str) -> None:
        with pytest.raises(ValidationError):
            _settings(payout_min_eligible_contribution=Decimal(contribution))

    def test_concurrency_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            _settings(metrics_refresh_concurrency=0)


class TestValidateSettings:
    def test_production_missing_provider_exits(self, capsys: pytest.CaptureFixture[str]) -> None:
        settings = _settings(production=True)

        with pytest.raises(SystemExit) as exc_info:
            validate_settings(settings)

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "STARTUP FAILED" in err
        assert "METRICS_PROVIDER_URL" in err

    def test_production_valid(self) -> None:
        settings = _settings(
            production=True,
            metrics_provider_url="https://metrics.example",
            metrics_provider_token="tok",
        )

        validate_settings(settings)

    def test_production_inverted_backoff_exits(self) -> None:
        settings = _settings(
            production=True,
            metrics_provider_url="https://metrics.example",
            metrics_provider_token="tok",
            metrics_refresh_wait_initial=10,
            metrics_refresh_wait_max=1,
        )

        with pytest.raises(SystemExit):
            validate_settings(settings)

    def test_dev_mode_only_warns(self) -> None:
        validate_settings(_settings(production=False))


class TestGetSettings:
    def test_get_settings_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PRODUCTION", raising=False)

        assert get_settings() is get_settings()

    def test_invalid_environment_exits(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("METRICS_REFRESH_ATTEMPTS", "0")

        with pytest.raises(SystemExit) as exc_info:
            get_settings()

        assert exc_info.value.code == 1
        get_settings.cache_clear()


class TestOrchestratorFromSettings:
    def test_refresh_and_payout_tuning_wired(self, store: SettlementStore) -> None:
        bracket = InsuranceBracket(min_budget=Decimal("100"), min_submissions=2)
        s = _settings(
            metrics_refresh_jitter=0.25,
            metrics_refresh_wait_initial=0.5,
            payout_max_share=Decimal("0.5"),
            payout_min_eligible_points=Decimal("50"),
            payout_min_eligible_contribution=Decimal("0.001"),
            payout_insurance_brackets=[bracket],
        )

        orchestrator = SettlementOrchestrator.from_settings(store, s)

        assert orchestrator._refresh_jitter == 0.25
        assert orchestrator._refresh_wait_initial == 0.5
        assert orchestrator._max_share == Decimal("0.5")
        assert orchestrator._eligibility == EligibilityRules(
            min_points=Decimal("50"), min_contribution=Decimal("0.001")
        )
        assert orchestrator._insurance_brackets == (bracket,)
