"""
Shared authentication utilities.

Why:
    The login route and the auth middleware must agree on session cookie
    flags. Keeping a single helper avoids drift between them.

Design:
    The helper is pure: it accepts an environment string and a lifetime and
    returns the corresponding cookie flags.
"""

from __future__ import annotations


def cookie_opts(environment: str, ttl_seconds: int) -> dict:
    """Return hardened cookie flags (dev = prod for `secure`).

    Returns a mapping with keys:
      - httponly: True
      - secure: True
      - samesite: "strict" in production, "lax" elsewhere
      - max_age: the session lifetime in seconds
      - path: "/"
    """
    samesite = "strict" if (environment or "").lower() == "prod" else "lax"
    return {"httponly": True, "secure": True, "samesite": samesite, "max_age": int(ttl_seconds), "path": "/"}
