"""Per-client rate limiter, shared by main.py and the approval action route.

Limits are keyed by route rather than by request path, so one client acting
on many documents draws from a single budget.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, key_style="endpoint", headers_enabled=False)
