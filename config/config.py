# config/config.py
"""
Global bot configuration.
All process-level constants live here.
Trading parameters (EMA periods, TP/SL, kill-switch limits) live in
config/bot.yaml and are loaded into a BotConfig by flipbot/core/loader.py.

Edit this file to change: file locations, logging verbosity,
heartbeat intervals, HTTP timeouts.
"""

from pathlib import Path
from pytz import timezone

# ─────────────────────────────────────────────
# BOT IDENTITY
# ─────────────────────────────────────────────

BOT_NAME    = "FlipBot_EMA_Scalper"
BOT_KEY     = "flipbot"                   # must match top-level key in bot.yaml
BASE_DIR    = Path(__file__).resolve().parent.parent

# ─────────────────────────────────────────────
# FILE PATHS  (auto-created if missing)
# ─────────────────────────────────────────────

LOGS_DIR       = BASE_DIR / "logs"
STATE_DIR      = BASE_DIR / "state"
LOG_PATH       = LOGS_DIR  / "bot_log.jsonl"
STATE_PATH     = STATE_DIR / "bot_state.json"
BOT_YAML_PATH  = BASE_DIR  / "config" / "bot.yaml"

# ─────────────────────────────────────────────
# ENVIRONMENT OVERRIDES
# ─────────────────────────────────────────────

# FLIPBOT_MODE=paper, FLIPBOT_EMA_FAST=3, ... override the YAML values
ENV_PREFIX = "FLIPBOT_"

# ─────────────────────────────────────────────
# TIMEZONES
# ─────────────────────────────────────────────

UTC = timezone("UTC")

# ─────────────────────────────────────────────
# PRICE FEEDS
# ─────────────────────────────────────────────

PRICE_HTTP_TIMEOUT = 10   # seconds per request

SIM_START_PRICE    = 45000.0
SIM_VOLATILITY     = 0.0001   # max fractional move per update

BINANCE_KLINES_URL = "https://api.binance.com/api/v3/klines"
BINANCE_MAX_LIMIT  = 1000

# ─────────────────────────────────────────────
# PAPER FILLS
# ─────────────────────────────────────────────

PAPER_SLIPPAGE_BPS = 1.0   # taker slippage applied against us on every fill

# ─────────────────────────────────────────────
# LOGGING VERBOSITY
# ─────────────────────────────────────────────

LOG_LEVEL         = "INFO"  # DEBUG | INFO | WARN | ERROR
VERBOSE_TICKS     = True    # one line per tick: price / EMAs / trend / position
VERBOSE_VENUE     = True    # log every simulated fill

# Heartbeat intervals (0 = OFF)
EQUITY_HEARTBEAT_SECONDS = 600  # print equity/stats every 10 min
