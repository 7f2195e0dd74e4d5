# flipbot/core/errors.py
"""
Error taxonomy.

  PriceUnavailable: price feed failed (network, HTTP status, bad payload).
  ExecutionFailure: venue could not place or close an order.
  ConfigurationError: invalid startup parameters; fatal before the loop starts.

The first two are caught at the tick boundary in the main loop and counted
toward consec_errors. ConfigurationError is never caught inside the bot.
"""
from __future__ import annotations


class PriceUnavailable(RuntimeError):
    pass


class ExecutionFailure(RuntimeError):
    pass


class ConfigurationError(ValueError):
    pass
