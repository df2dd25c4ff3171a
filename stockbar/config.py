"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.stocks/config.yaml")
CONFIG_ENV_VAR = "STOCKBAR_CONFIG"


class ConfigError(ValueError):
    """Configuration is absent, unparsable or invalid. Fatal at startup."""


# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderConfig:
    name: str = "stooq"
    base_url: str = ""
    timeout_seconds: float = 5.0
    batch_size: int = 0
    max_concurrency: int = 4
    market_suffix: str = ".us"
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )


@dataclass(frozen=True)
class CacheConfig:
    enabled: bool = True
    path: str = "~/.cache/stockbar/quotes.json"
    ttl_seconds: int = 285


@dataclass(frozen=True)
class DisplayConfig:
    currency_symbol: str = "$"
    colors: bool = True
    stale_marker: str = "(stale)"


@dataclass(frozen=True)
class HoldingSpec:
    """Raw holding entry as written in config.yaml, validated later."""

    symbol: Any = None
    shares: Any = None
    cost_basis: Any = None


@dataclass(frozen=True)
class PortfolioConfig:
    holdings_file: str = "~/.stocks/data.csv"
    holdings: tuple[HoldingSpec, ...] = ()
    consolidate: bool = False


@dataclass(frozen=True)
class AppConfig:
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    portfolio: PortfolioConfig = field(default_factory=PortfolioConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_provider(raw: dict[str, Any]) -> ProviderConfig:
    defaults = ProviderConfig()
    return ProviderConfig(
        name=str(raw.get("name", defaults.name)).lower(),
        base_url=raw.get("base_url", defaults.base_url) or "",
        timeout_seconds=float(raw.get("timeout_seconds", defaults.timeout_seconds)),
        batch_size=int(raw.get("batch_size", defaults.batch_size)),
        max_concurrency=int(raw.get("max_concurrency", defaults.max_concurrency)),
        market_suffix=raw.get("market_suffix", defaults.market_suffix) or "",
        user_agent=raw.get("user_agent", defaults.user_agent),
    )


def _build_cache(raw: dict[str, Any]) -> CacheConfig:
    defaults = CacheConfig()
    return CacheConfig(
        enabled=_as_bool(raw.get("enabled", defaults.enabled)),
        path=raw.get("path", defaults.path) or defaults.path,
        ttl_seconds=int(raw.get("ttl_seconds", defaults.ttl_seconds)),
    )


def _build_display(raw: dict[str, Any]) -> DisplayConfig:
    defaults = DisplayConfig()
    return DisplayConfig(
        currency_symbol=raw.get("currency_symbol", defaults.currency_symbol),
        colors=_as_bool(raw.get("colors", defaults.colors)),
        stale_marker=raw.get("stale_marker", defaults.stale_marker),
    )


def _build_holdings(raw: list[Any]) -> tuple[HoldingSpec, ...]:
    specs: list[HoldingSpec] = []
    for entry in raw:
        if isinstance(entry, dict):
            specs.append(
                HoldingSpec(
                    symbol=entry.get("symbol"),
                    shares=entry.get("shares"),
                    cost_basis=entry.get("cost_basis"),
                )
            )
        else:
            # Kept so the holdings loader can warn about it with context.
            specs.append(HoldingSpec(symbol=entry))
    return tuple(specs)


def _build_portfolio(raw: dict[str, Any]) -> PortfolioConfig:
    defaults = PortfolioConfig()
    holdings_raw = raw.get("holdings") or []
    if not isinstance(holdings_raw, list):
        raise ConfigError("portfolio.holdings must be a list")
    return PortfolioConfig(
        holdings_file=raw.get("holdings_file", defaults.holdings_file)
        or defaults.holdings_file,
        holdings=_build_holdings(holdings_raw),
        consolidate=_as_bool(raw.get("consolidate", defaults.consolidate)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve_config_path(config_path: str | Path | None) -> tuple[Path, bool]:
    """Return the config path to read and whether it was asked for explicitly."""
    if config_path is not None:
        return Path(config_path).expanduser(), True
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser(), True
    return DEFAULT_CONFIG_PATH.expanduser(), False


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``$STOCKBAR_CONFIG`` or
            ``~/.stocks/config.yaml``. An explicitly named file must exist;
            a missing default file yields the built-in defaults.

    Raises:
        ConfigError: the file is missing, unparsable or holds invalid values.
    """
    load_dotenv()

    path, explicit = resolve_config_path(config_path)

    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        logger.debug("No config file at %s, using defaults", path)
        return AppConfig()

    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    raw = _interpolate_env(raw)

    try:
        cfg = AppConfig(
            provider=_build_provider(raw.get("provider") or {}),
            cache=_build_cache(raw.get("cache") or {}),
            display=_build_display(raw.get("display") or {}),
            portfolio=_build_portfolio(raw.get("portfolio") or {}),
        )
    except ConfigError:
        raise
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigError(f"Invalid value in {path}: {e}") from e

    _validate(cfg)
    logger.info("Configuration loaded from %s", path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    # Imported here: the provider registry depends on this module.
    from .providers import PROVIDERS

    if cfg.provider.name not in PROVIDERS:
        raise ConfigError(
            f"Unknown quote provider '{cfg.provider.name}' "
            f"(expected one of: {', '.join(sorted(PROVIDERS))})"
        )
    if cfg.provider.timeout_seconds <= 0:
        raise ConfigError("provider.timeout_seconds must be positive")
    if cfg.provider.batch_size < 0:
        raise ConfigError("provider.batch_size must not be negative")
    if cfg.provider.max_concurrency < 1:
        raise ConfigError("provider.max_concurrency must be at least 1")
    if cfg.cache.ttl_seconds <= 0:
        raise ConfigError("cache.ttl_seconds must be positive")
