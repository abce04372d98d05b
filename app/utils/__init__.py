"""Auth and email helpers, loaded on first attribute access.

`import app.utils` stays cheap for code that only needs the clock helpers;
passlib and jose are imported when a security name is first used.
"""

from importlib import import_module

_EXPORTS = {
    "verify_password": "security",
    "get_password_hash": "security",
    "create_access_token": "security",
    "create_user_token": "security",
    "decode_access_token": "security",
    "authenticate_user": "security",
    "get_current_user": "security",
    "oauth2_scheme": "security",
    "has_role": "security",
    "require_role": "security",
    "is_email_enabled": "email",
    "send_email": "email",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name):
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(import_module(f".{module_name}", __name__), name)
