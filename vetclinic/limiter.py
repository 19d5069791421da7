# vetclinic/limiter.py
# This file's sole purpose is to create the rate limiter instance.
# This avoids circular imports between main.py and the routers.

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().rate_limit_enabled,
)


def public_rate_limit() -> str:
    return get_settings().public_rate_limit
