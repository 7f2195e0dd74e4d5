# flipbot/core/logger.py
"""
Logging infrastructure.

One call, one event:
  - a JSON record appended to the JSONL file (when init_logger got a path),
  - a readable line on the real terminal: DEBUG/INFO to stdout,
    WARN/ERROR to stderr.

Records carry a per-process sequence number so the JSONL file can be
lined up with the terminal when two events share a timestamp. Events
below the configured level are dropped before either output.
Logging never raises into the trading loop.
"""
from __future__ import annotations

import sys
import json
import itertools
from pathlib import Path
from datetime import datetime
from typing import Any, Dict, Optional, TextIO, TYPE_CHECKING

from pytz import timezone

if TYPE_CHECKING:
    from flipbot.core.models import BotConfig

LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}

# Filled by init_logger()
_BOT_NAME: str = "FlipBot"
_LOG_PATH: Optional[Path] = None
_MIN_LEVEL: int = LEVELS["INFO"]
_SEQ = itertools.count(1)


def init_logger(bot_name: str, log_path: Optional[Path], min_level: str = "INFO") -> None:
    """Call once at startup. log_path=None → terminal only."""
    global _BOT_NAME, _LOG_PATH, _MIN_LEVEL
    level = min_level.upper()
    if level not in LEVELS:
        raise ValueError(f"Unknown log level {min_level!r}; expected one of {list(LEVELS)}")
    _BOT_NAME  = bot_name
    _LOG_PATH  = log_path
    _MIN_LEVEL = LEVELS[level]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)


# ─────────────────────────────────────────────
# RECORD
# ─────────────────────────────────────────────

def _bot_context(cfg: Optional["BotConfig"]) -> Dict[str, Any]:
    if cfg is None:
        return {"mode": None, "market": None}
    ctx: Dict[str, Any] = {"mode": cfg.mode, "market": cfg.market}
    if cfg.mode == "live":
        ctx["live_mode"] = cfg.live_mode
    return ctx


def _build_record(
    level: str,
    msg: str,
    cfg: Optional["BotConfig"],
    fields: Dict[str, Any],
) -> Dict[str, Any]:
    return {
        "seq":    next(_SEQ),
        "ts_utc": datetime.now(timezone("UTC")).isoformat(),
        "level":  level,
        "bot":    _BOT_NAME,
        **_bot_context(cfg),
        "msg":    msg,
        **fields,
    }


def _terminal_line(record: Dict[str, Any]) -> str:
    ts    = record["ts_utc"][:19].replace("T", " ")
    where = f" [{record['mode']}:{record['market']}]" if record["mode"] else ""
    return f"[{ts} UTC] [{record['level']}]{where} {record['msg']}"


# ─────────────────────────────────────────────
# SINKS
# ─────────────────────────────────────────────

def _write_terminal(stream: Optional[TextIO], line: str) -> None:
    if stream is None:
        return
    try:
        stream.write(line + "\n")
        stream.flush()
    except Exception:
        pass   # detached terminal


def _write_jsonl(record: Dict[str, Any]) -> None:
    if _LOG_PATH is None:
        return
    try:
        with _LOG_PATH.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
    except Exception as e:
        _write_terminal(sys.__stderr__, f"[LOGGER][WARN] write failed: {e}")


# ─────────────────────────────────────────────
# PUBLIC
# ─────────────────────────────────────────────

def log_event(
    level: str,
    msg: str,
    *,
    cfg: Optional["BotConfig"] = None,
    **fields,
) -> None:
    """Route one event to the JSONL file and the terminal. Unknown levels count as INFO."""
    level = level.upper()
    if LEVELS.get(level, LEVELS["INFO"]) < _MIN_LEVEL:
        return

    record = _build_record(level, msg, cfg, fields)
    _write_jsonl(record)

    stream = sys.__stderr__ if level in ("WARN", "ERROR") else sys.__stdout__
    _write_terminal(stream, _terminal_line(record))


def log(msg: str, level: str = "INFO", **fields) -> None:
    """Log without bot context."""
    log_event(level, msg, **fields)


def log_bot(cfg: "BotConfig", msg: str, level: str = "INFO", **fields) -> None:
    """Log with mode / market context."""
    log_event(level, msg, cfg=cfg, **fields)
