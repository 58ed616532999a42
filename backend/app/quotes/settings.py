"""Configuration loading and validation for the quote subsystem."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

CAPABILITIES = frozenset({"quote", "search", "profile"})

DEFAULT_PROVIDER_ORDER = ("yahoo", "alpha_vantage", "fmp", "twelve_data")

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


class ProviderDescriptor(BaseModel):
    """Static configuration for one quote provider. Read-only after startup."""

    model_config = ConfigDict(frozen=True)

    name: str
    priority: int
    enabled: bool = True
    api_key: str | None = None
    max_requests: int = 60
    window_seconds: float = 60.0
    timeout: float = 5.0
    capabilities: frozenset[str] = frozenset({"quote"})

    @field_validator("capabilities")
    @classmethod
    def capabilities_are_known(cls, v: frozenset[str]) -> frozenset[str]:
        unknown = v - CAPABILITIES
        if unknown:
            raise ValueError(f"unknown capabilities: {sorted(unknown)}")
        return v

    @field_validator("max_requests")
    @classmethod
    def max_requests_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_requests must be >= 1")
        return v

    @field_validator("window_seconds", "timeout")
    @classmethod
    def strictly_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities


class CircuitSettings(BaseModel):
    """Thresholds for the per-provider circuit breaker."""

    model_config = ConfigDict(frozen=True)

    window: int = 20
    min_calls: int = 5
    failure_threshold: float = 0.5
    cooldown: float = 30.0

    @model_validator(mode="after")
    def min_calls_fit_window(self) -> CircuitSettings:
        if not 1 <= self.min_calls <= self.window:
            raise ValueError("min_calls must be between 1 and window")
        if not 0.0 < self.failure_threshold <= 1.0:
            raise ValueError("failure_threshold must be in (0, 1]")
        return self


class QuoteSettings(BaseModel):
    """Top-level settings, loaded once at process start."""

    model_config = ConfigDict(frozen=True)

    providers: tuple[ProviderDescriptor, ...] = ()
    use_real_prices: bool = True
    cache_ttl: float = 60.0
    poll_interval: float = 10.0
    max_in_flight: int = 4
    total_timeout: float = 8.0
    # Seconds between provider health sweeps; 0 disables them
    health_check_interval: float = 1800.0
    health_check_symbol: str = "AAPL"
    circuit: CircuitSettings = CircuitSettings()
    allowed_origins: tuple[str, ...] = ("http://localhost:3000", "http://127.0.0.1:3000")
    log_level: str = "INFO"

    @field_validator("cache_ttl", "poll_interval", "total_timeout")
    @classmethod
    def durations_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("health_check_interval")
    @classmethod
    def health_check_interval_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("max_in_flight")
    @classmethod
    def max_in_flight_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_in_flight must be >= 1")
        return v

    @model_validator(mode="after")
    def provider_names_unique(self) -> QuoteSettings:
        names = [p.name for p in self.providers]
        if len(names) != len(set(names)):
            raise ValueError("provider names must be unique")
        return self

    def enabled_providers(self) -> list[ProviderDescriptor]:
        """Enabled descriptors in priority order (lower number first)."""
        return sorted((p for p in self.providers if p.enabled), key=lambda p: p.priority)


def _env_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ConfigError(f"{key} must be a boolean, got {raw!r}", {"field": key})


def _env_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be a number, got {raw!r}", {"field": key}) from e


def _env_list(environ: Mapping[str, str], key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = environ.get(key, "").strip()
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _env_key(environ: Mapping[str, str], key: str) -> str | None:
    # 'demo' is the placeholder the provider docs hand out; treat as missing
    value = environ.get(key, "").strip()
    return value if value and value.lower() != "demo" else None


def build_provider_descriptors(
    environ: Mapping[str, str], timeout: float
) -> tuple[ProviderDescriptor, ...]:
    """Build descriptors for the network providers plus the demo fallback.

    Priority follows QUOTE_PROVIDER_ORDER. Providers that need an API key are
    disabled when the key is absent. The demo provider is enabled only when
    real prices are off or no network provider survived.
    """
    order = _env_list(environ, "QUOTE_PROVIDER_ORDER", DEFAULT_PROVIDER_ORDER)
    unknown = set(order) - set(DEFAULT_PROVIDER_ORDER)
    if unknown:
        raise ConfigError(
            f"QUOTE_PROVIDER_ORDER names unknown providers: {sorted(unknown)}",
            {"field": "QUOTE_PROVIDER_ORDER"},
        )
    rank = {name: i + 1 for i, name in enumerate(order)}
    use_real = _env_bool(environ, "USE_REAL_PRICES", True)

    av_key = _env_key(environ, "ALPHA_VANTAGE_API_KEY")
    fmp_key = _env_key(environ, "FMP_API_KEY")
    td_key = _env_key(environ, "TWELVE_DATA_API_KEY")

    def _enabled(name: str, key_ok: bool = True) -> bool:
        return use_real and name in rank and key_ok

    descriptors = [
        ProviderDescriptor(
            name="yahoo",
            priority=rank.get("yahoo", 90),
            enabled=_enabled("yahoo"),
            max_requests=30,
            window_seconds=60.0,
            timeout=timeout,
            capabilities=frozenset({"quote", "search", "profile"}),
        ),
        ProviderDescriptor(
            name="alpha_vantage",
            priority=rank.get("alpha_vantage", 91),
            enabled=_enabled("alpha_vantage", av_key is not None),
            api_key=av_key,
            max_requests=5,  # free tier: 5 requests per minute
            window_seconds=60.0,
            timeout=timeout,
            capabilities=frozenset({"quote", "search", "profile"}),
        ),
        ProviderDescriptor(
            name="fmp",
            priority=rank.get("fmp", 92),
            enabled=_enabled("fmp", fmp_key is not None),
            api_key=fmp_key,
            max_requests=250,  # free tier: 250 requests per day
            window_seconds=86_400.0,
            timeout=timeout,
            capabilities=frozenset({"quote", "search", "profile"}),
        ),
        ProviderDescriptor(
            name="twelve_data",
            priority=rank.get("twelve_data", 93),
            enabled=_enabled("twelve_data", td_key is not None),
            api_key=td_key,
            max_requests=8,  # free tier: 8 requests per minute
            window_seconds=60.0,
            timeout=timeout,
            capabilities=frozenset({"quote", "search"}),
        ),
    ]

    any_network = any(d.enabled for d in descriptors)
    descriptors.append(
        ProviderDescriptor(
            name="demo",
            priority=100,
            enabled=not any_network,
            max_requests=10_000,
            window_seconds=60.0,
            timeout=timeout,
            capabilities=frozenset({"quote", "search"}),
        )
    )
    return tuple(descriptors)


def load_settings(environ: Mapping[str, str] | None = None) -> QuoteSettings:
    """Load settings from environment variables.

    Raises ConfigError on any invalid value.
    """
    env = os.environ if environ is None else environ
    try:
        provider_timeout = _env_float(env, "QUOTE_PROVIDER_TIMEOUT", 5.0)
        settings = QuoteSettings(
            providers=build_provider_descriptors(env, provider_timeout),
            use_real_prices=_env_bool(env, "USE_REAL_PRICES", True),
            cache_ttl=_env_float(env, "QUOTE_CACHE_TTL", 60.0),
            poll_interval=_env_float(env, "QUOTE_POLL_INTERVAL", 10.0),
            max_in_flight=int(_env_float(env, "QUOTE_MAX_IN_FLIGHT", 4)),
            total_timeout=_env_float(env, "QUOTE_TOTAL_TIMEOUT", 8.0),
            health_check_interval=_env_float(env, "QUOTE_HEALTH_CHECK_INTERVAL", 1800.0),
            health_check_symbol=env.get("QUOTE_HEALTH_CHECK_SYMBOL", "AAPL").strip().upper()
            or "AAPL",
            allowed_origins=_env_list(
                env, "ALLOWED_ORIGINS", ("http://localhost:3000", "http://127.0.0.1:3000")
            ),
            log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigError(f"Invalid configuration: {first.get('msg')}", {"field": field}) from e

    enabled = [p.name for p in settings.enabled_providers()]
    logger.info("Quote providers enabled (priority order): %s", ", ".join(enabled))
    return settings
