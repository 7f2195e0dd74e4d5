# flipbot/core/loader.py
"""
Config loader.

Reads config/bot.yaml, applies FLIPBOT_* environment overrides, validates
every field, and returns one frozen BotConfig for the whole process.

Any problem raises ConfigurationError at startup; the main loop never
starts with a half-valid config.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import yaml

from config.config import BOT_KEY, BOT_YAML_PATH, ENV_PREFIX
from flipbot.core.errors import ConfigurationError
from flipbot.core.logger import log
from flipbot.core.models import BotConfig, LIVE_MODES, MODES, PRICE_KINDS


# Defaults for every field. Anything missing from YAML and env falls back here.
DEFAULTS: Dict[str, Any] = {
    "mode":                "quote",
    "live_mode":           "stub",
    "market":              "BTC-PERP",
    "price_source":        "index",
    "price_api_url":       None,
    "max_leverage":        50,
    "margin_pct":          2.0,
    "tp_bps":              10.0,
    "sl_bps":              10.0,
    "fee_bps":             2.5,
    "ema_fast":            9,
    "ema_slow":            21,
    "tf_seconds":          15,
    "initial_equity":      10000.0,
    "cooldown_ms_paper":   200,
    "cooldown_ms_live":    2000,
    "max_daily_loss_pct":  1.0,
    "max_consec_losses":   10,
    "max_trades_per_hour": 120,
    "max_consec_errors":   20,
}


# ─────────────────────────────────────────────
# CASTERS
# ─────────────────────────────────────────────

def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("expected an integer")
        return int(value)
    return int(str(value).strip())


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    return float(str(value).strip()) if isinstance(value, str) else float(value)


def _to_str(value: Any) -> str:
    return str(value).strip()


def _to_opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


_CASTERS: Dict[str, Callable[[Any], Any]] = {
    "mode":                _to_str,
    "live_mode":           _to_str,
    "market":              _to_str,
    "price_source":        _to_str,
    "price_api_url":       _to_opt_str,
    "max_leverage":        _to_float,
    "margin_pct":          _to_float,
    "tp_bps":              _to_float,
    "sl_bps":              _to_float,
    "fee_bps":             _to_float,
    "ema_fast":            _to_int,
    "ema_slow":            _to_int,
    "tf_seconds":          _to_float,
    "initial_equity":      _to_float,
    "cooldown_ms_paper":   _to_int,
    "cooldown_ms_live":    _to_int,
    "max_daily_loss_pct":  _to_float,
    "max_consec_losses":   _to_int,
    "max_trades_per_hour": _to_int,
    "max_consec_errors":   _to_int,
}

_POSITIVE = [
    "max_leverage", "ema_fast", "ema_slow", "tf_seconds", "initial_equity",
    "max_daily_loss_pct", "max_consec_losses", "max_trades_per_hour", "max_consec_errors",
]
_NON_NEGATIVE = ["tp_bps", "sl_bps", "fee_bps", "cooldown_ms_paper", "cooldown_ms_live"]


# ─────────────────────────────────────────────
# YAML + ENV
# ─────────────────────────────────────────────

def _read_yaml(path: Path, bot_key: str) -> Dict[str, Any]:
    """Return the mapping under `bot_key`, or {} if the file does not exist."""
    if not path.exists():
        log(f"[LOADER] {path} not found, using defaults + env", level="WARN")
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            all_data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse {path}: {e}") from e

    if not isinstance(all_data, dict) or bot_key not in all_data:
        keys = list(all_data.keys()) if isinstance(all_data, dict) else []
        raise ConfigurationError(
            f"Bot key '{bot_key}' not found in {path.name}. Available keys: {keys}"
        )

    section = all_data[bot_key] or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected a mapping under key '{bot_key}' in {path.name}")

    unknown = sorted(set(section) - set(DEFAULTS))
    if unknown:
        raise ConfigurationError(f"Unknown fields under '{bot_key}': {unknown}")

    return dict(section)


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
    """FLIPBOT_EMA_FAST=3 → {"ema_fast": "3"}. Empty values are ignored."""
    out: Dict[str, str] = {}
    for field in DEFAULTS:
        raw = environ.get(ENV_PREFIX + field.upper())
        if raw:
            out[field] = raw
    return out


# ─────────────────────────────────────────────
# VALIDATION
# ─────────────────────────────────────────────

def _validate(values: Dict[str, Any]) -> None:
    if values["mode"] not in MODES:
        raise ConfigurationError(f"Invalid mode: {values['mode']}. Must be one of {list(MODES)}.")
    if values["live_mode"] not in LIVE_MODES:
        raise ConfigurationError(
            f"Invalid live_mode: {values['live_mode']}. Must be one of {list(LIVE_MODES)}."
        )
    if values["price_source"] not in PRICE_KINDS:
        raise ConfigurationError(
            f"Invalid price_source: {values['price_source']}. Must be one of {list(PRICE_KINDS)}."
        )
    if not values["market"]:
        raise ConfigurationError("market must not be empty")

    bad = [k for k in _POSITIVE if values[k] <= 0]
    if bad:
        raise ConfigurationError(f"Fields must be > 0: {bad}")

    bad = [k for k in _NON_NEGATIVE if values[k] < 0]
    if bad:
        raise ConfigurationError(f"Fields must be >= 0: {bad}")

    if not 0 < values["margin_pct"] <= 100:
        raise ConfigurationError(f"margin_pct must be in (0, 100], got {values['margin_pct']}")

    if values["mode"] == "live" and values["live_mode"] == "real" and not values["price_api_url"]:
        raise ConfigurationError("price_api_url is required for live_mode=real")


# ─────────────────────────────────────────────
# PUBLIC
# ─────────────────────────────────────────────

def load_config(
    bot_key: str = BOT_KEY,
    path: Path = BOT_YAML_PATH,
    environ: Optional[Mapping[str, str]] = None,
) -> BotConfig:
    """
    Load, override, cast and validate.
    Precedence: environment > bot.yaml > DEFAULTS.
    """
    environ = os.environ if environ is None else environ

    merged: Dict[str, Any] = dict(DEFAULTS)
    merged.update(_read_yaml(Path(path), bot_key))
    merged.update(_env_overrides(environ))

    values: Dict[str, Any] = {}
    for field, cast in _CASTERS.items():
        try:
            values[field] = cast(merged[field])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid value for {field}: {merged[field]!r} ({e})") from e

    _validate(values)

    cfg = BotConfig(**values)
    log(
        f"[LOADER] mode={cfg.mode} market={cfg.market} "
        f"EMA={cfg.ema_fast}/{cfg.ema_slow} tf={cfg.tf_seconds}s "
        f"TP={cfg.tp_bps}bps SL={cfg.sl_bps}bps fee={cfg.fee_bps}bps "
        f"lev={cfg.max_leverage}x margin={cfg.margin_pct}%"
    )
    return cfg
