"""
Rate limiter instance for SlowAPI.

Shared so both main (app.state.limiter) and route modules can use the same
instance without circular imports.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core import config


limiter = Limiter(key_func=get_remote_address, enabled=config.RATE_LIMIT_ENABLED)

limit_commands = limiter.limit(config.COMMAND_RATE_LIMIT)
