# app/api/__init__.py - HTTP routers, one module per resource

from . import auth
from . import availability
from . import earnings
from . import notification
from . import payment
from . import pricing
from . import session
from . import subscription

__all__ = [
    "auth",
    "availability",
    "earnings",
    "notification",
    "payment",
    "pricing",
    "session",
    "subscription",
]
