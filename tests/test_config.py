"""Tests for configuration models."""
import pytest
from pydantic import ValidationError

from arbigraph.config import (
    AcceptanceBand,
    ArbigraphConfig,
    FeeConfig,
    FeeOverride,
    SearchConfig,
    TokenConfig,
)


class TestConfig:
    """Test suite for configuration validation."""

    def test_defaults(self, monkeypatch):
        for name in ("HOP_LIMIT", "MIN_PROFIT_PCT", "MAX_PROFIT_PCT", "DEFAULT_FEE", "RATE_SOURCE"):
            monkeypatch.delenv(name, raising=False)

        cfg = ArbigraphConfig()

        assert cfg.search.hop_limit == 4
        assert cfg.search.min_cycle_tokens >= 2
        assert cfg.search.max_path_length == 10
        assert cfg.acceptance.min_profit_pct == 0.05
        assert cfg.acceptance.max_profit_pct == 50.0
        assert cfg.fees.default_fee == 0.0025
        assert cfg.rate_source == "coingecko"
        assert [t.symbol for t in cfg.tokens] == ["SOL", "USDC", "BONK", "WIF", "JUP"]

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("HOP_LIMIT", "6")
        monkeypatch.setenv("MAX_QUOTE_AGE", "45")

        assert SearchConfig().hop_limit == 6
        assert FeeConfig().max_quote_age_seconds == 45.0

    def test_quote_age_disabled_by_zero(self, monkeypatch):
        monkeypatch.setenv("MAX_QUOTE_AGE", "0")

        assert FeeConfig().max_quote_age_seconds is None

    def test_frozen(self):
        band = AcceptanceBand(min_profit_pct=0.1, max_profit_pct=5.0)

        with pytest.raises(ValidationError):
            band.min_profit_pct = 1.0

    @pytest.mark.parametrize("hop_limit", [0, -1])
    def test_hop_limit_must_be_positive(self, hop_limit):
        with pytest.raises(ValidationError):
            SearchConfig(hop_limit=hop_limit)

    def test_rate_bounds_ordered(self):
        with pytest.raises(ValidationError):
            SearchConfig(min_effective_rate=10.0, max_effective_rate=1.0)

    def test_min_cycle_tokens_within_path_cap(self):
        """A minimum loop size longer than the path cap could never be met."""
        with pytest.raises(ValidationError):
            SearchConfig(min_cycle_tokens=5, max_path_length=4)

        assert SearchConfig(min_cycle_tokens=4, max_path_length=4).min_cycle_tokens == 4

    def test_inverted_band(self):
        with pytest.raises(ValidationError):
            AcceptanceBand(min_profit_pct=5.0, max_profit_pct=1.0)

    @pytest.mark.parametrize("fee", [-0.1, 1.0, 1.5])
    def test_fee_range(self, fee):
        with pytest.raises(ValidationError):
            FeeConfig(default_fee=fee)
        with pytest.raises(ValidationError):
            FeeOverride(source="A", target="B", fee=fee)

    def test_fee_override_lookup(self):
        fees = FeeConfig(overrides=[FeeOverride(source="A", target="B", fee=0.001)])

        assert fees.fee_for("A", "B") == 0.001
        assert fees.fee_for("B", "A") is None

    def test_empty_token_universe(self):
        with pytest.raises(ValidationError):
            ArbigraphConfig(tokens=[])

    def test_duplicate_tokens(self):
        tokens = [
            TokenConfig(identity="A", symbol="A"),
            TokenConfig(identity="A", symbol="B"),
        ]

        with pytest.raises(ValidationError):
            ArbigraphConfig(tokens=tokens)

    def test_unknown_rate_source(self):
        with pytest.raises(ValidationError):
            ArbigraphConfig(rate_source="carrier-pigeon")
