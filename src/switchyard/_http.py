"""HTTP defaults shared by configuration and the generic backend adapter."""

from __future__ import annotations

# Health probe results are reused for this long before probing again.
HEALTH_CACHE_TTL_S: float = 60.0

DEFAULT_AUTH_HEADER = "Authorization"
DEFAULT_AUTH_SCHEME = "Bearer "
DEFAULT_TIMEOUT_S: float = 30.0
