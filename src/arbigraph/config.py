"""Configuration management for Arbigraph."""
import os
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from dotenv import load_dotenv

load_dotenv()


class TokenConfig(BaseModel):
    """One token of the fixed search universe."""
    model_config = ConfigDict(frozen=True)

    identity: str = Field(min_length=1)
    symbol: str = Field(min_length=1)
    decimals: int = Field(default=9, ge=0)
    price_id: Optional[str] = None


def _default_tokens() -> List[TokenConfig]:
    return [
        TokenConfig(identity="So11111111111111111111111111111111111111112", symbol="SOL", decimals=9, price_id="solana"),
        TokenConfig(identity="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", symbol="USDC", decimals=6, price_id="usd-coin"),
        TokenConfig(identity="DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263", symbol="BONK", decimals=5, price_id="bonk"),
        TokenConfig(identity="EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm", symbol="WIF", decimals=6, price_id="dogwifcoin"),
        TokenConfig(identity="27G8MtK7VtTcCHkpASjSDdkWWYfoqT6ggEuKidVJidD4", symbol="JUP", decimals=6, price_id="jupiter-exchange-solana"),
    ]


class SearchConfig(BaseModel):
    """Cycle search parameters."""
    model_config = ConfigDict(frozen=True)

    hop_limit: int = Field(
        default_factory=lambda: int(os.getenv("HOP_LIMIT", "4")), gt=0
    )
    # effective rates outside this band are treated as bad data
    min_effective_rate: float = Field(
        default_factory=lambda: float(os.getenv("MIN_EFFECTIVE_RATE", "1e-9")), gt=0
    )
    max_effective_rate: float = Field(
        default_factory=lambda: float(os.getenv("MAX_EFFECTIVE_RATE", "1e8")), gt=0
    )
    max_path_length: int = Field(default=10, ge=3)
    min_cycle_tokens: int = Field(
        default_factory=lambda: int(os.getenv("MIN_CYCLE_TOKENS", "3")), ge=2
    )
    relaxation_epsilon: float = Field(default=1e-12, ge=0)
    search_workers: int = Field(
        default_factory=lambda: int(os.getenv("SEARCH_WORKERS", "1")), ge=1
    )

    @model_validator(mode="after")
    def _check_rate_bounds(self):
        if self.min_effective_rate >= self.max_effective_rate:
            raise ValueError("min_effective_rate must be below max_effective_rate")
        # a loop of n distinct tokens needs n hops
        if self.min_cycle_tokens > self.max_path_length:
            raise ValueError("min_cycle_tokens must not exceed max_path_length")
        return self


class AcceptanceBand(BaseModel):
    """Profit percentage band an opportunity must fall into."""
    model_config = ConfigDict(frozen=True)

    min_profit_pct: float = Field(
        default_factory=lambda: float(os.getenv("MIN_PROFIT_PCT", "0.05"))
    )
    max_profit_pct: float = Field(
        default_factory=lambda: float(os.getenv("MAX_PROFIT_PCT", "50.0"))
    )
    max_results: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_band(self):
        if self.min_profit_pct >= self.max_profit_pct:
            raise ValueError(
                f"invalid acceptance band: min {self.min_profit_pct}% "
                f">= max {self.max_profit_pct}%"
            )
        return self


class EvaluationConfig(BaseModel):
    """Cycle replay parameters."""
    model_config = ConfigDict(frozen=True)

    reference_capital: float = Field(
        default_factory=lambda: float(os.getenv("REFERENCE_CAPITAL", "1000")), gt=0
    )
    cost_per_hop: float = Field(
        default_factory=lambda: float(os.getenv("COST_PER_HOP", "0.001")), ge=0
    )


class FeeOverride(BaseModel):
    """Fee for one ordered token pair."""
    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    fee: float = Field(ge=0, lt=1)


class FeeConfig(BaseModel):
    """Fee and quote freshness configuration."""
    model_config = ConfigDict(frozen=True)

    default_fee: float = Field(
        default_factory=lambda: float(os.getenv("DEFAULT_FEE", "0.0025")), ge=0, lt=1
    )
    overrides: List[FeeOverride] = Field(default_factory=list)
    max_quote_age_seconds: Optional[float] = Field(
        default_factory=lambda: float(os.getenv("MAX_QUOTE_AGE", "0")) or None
    )

    @field_validator("max_quote_age_seconds")
    @classmethod
    def _check_age(cls, value):
        if value is not None and value <= 0:
            raise ValueError("max_quote_age_seconds must be positive")
        return value

    def fee_for(self, source: str, target: str) -> Optional[float]:
        """Return the override for a pair, if one is configured."""
        for override in self.overrides:
            if override.source == source and override.target == target:
                return override.fee
        return None


class ArbigraphConfig(BaseModel):
    """Main application configuration."""
    model_config = ConfigDict(frozen=True)

    tokens: List[TokenConfig] = Field(default_factory=_default_tokens)
    search: SearchConfig = Field(default_factory=SearchConfig)
    acceptance: AcceptanceBand = Field(default_factory=AcceptanceBand)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    fees: FeeConfig = Field(default_factory=FeeConfig)
    scan_interval_seconds: float = Field(
        default_factory=lambda: float(os.getenv("SCAN_INTERVAL", "30")), gt=0
    )
    rate_source: str = Field(
        default_factory=lambda: os.getenv("RATE_SOURCE", "coingecko")
    )
    exchange_name: str = Field(
        default_factory=lambda: os.getenv("EXCHANGE_NAME", "kraken")
    )
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_dir: str = Field(default_factory=lambda: os.getenv("LOG_DIR", "logs"))

    @field_validator("tokens")
    @classmethod
    def _check_tokens(cls, tokens):
        if not tokens:
            raise ValueError("token universe must not be empty")
        identities = [t.identity for t in tokens]
        if len(set(identities)) != len(identities):
            raise ValueError("token identities must be unique")
        return tokens

    @field_validator("rate_source")
    @classmethod
    def _check_rate_source(cls, value):
        if value not in ("coingecko", "exchange"):
            raise ValueError(f"unknown rate source: {value}")
        return value


# global config used by the command line scanner
config = ArbigraphConfig()
