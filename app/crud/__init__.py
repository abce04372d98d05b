"""Query helpers for users, availability, pricing models, sessions and the ledger.

Submodules load on first access, so `from app.crud import session` does not
pull in password hashing through `app.crud.user`.
"""

from importlib import import_module

__all__ = ["user", "availability", "session", "pricing", "transaction", "payout"]


def __getattr__(name):
    if name in __all__:
        return import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
