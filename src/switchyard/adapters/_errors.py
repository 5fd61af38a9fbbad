"""Shared adapter-side error helpers.

Adapters map SDK and transport exceptions into APIError with a status code
and phase, then report them as failed results.
"""

from __future__ import annotations

import asyncio

import httpx

from switchyard.errors import APIError, _walk_exception_chain


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code."""
    for e in _walk_exception_chain(exc):
        for attr in ("status_code", "status"):
            value = getattr(e, attr, None)
            if isinstance(value, int) and 100 <= value <= 599:
                return value
        response = getattr(e, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return None


def _auth_hint(provider: str, status_code: int | None) -> str | None:
    """Generate a hint for auth errors naming the env var to check."""
    if status_code in {401, 403}:
        return f"Check credentials/permissions (try setting {provider.upper()}_API_KEY)."
    return None


def _is_network_error(exc: BaseException) -> bool:
    return any(
        isinstance(e, (httpx.TimeoutException, httpx.RequestError, TimeoutError))
        for e in _walk_exception_chain(exc)
    )


def wrap_provider_error(
    exc: BaseException,
    *,
    provider: str,
    phase: str,
    message: str | None = None,
) -> APIError:
    """Map provider SDK exceptions into APIError with stable metadata."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    # Already wrapped: fill in missing context only.
    if isinstance(exc, APIError):
        if exc.provider is None:
            exc.provider = provider
        if exc.phase is None:
            exc.phase = phase
        return exc

    status_code = extract_status_code(exc)
    msg = message or f"{provider} {phase} failed"
    if status_code is None and _is_network_error(exc):
        msg = f"{msg} (network error)"

    status_note = f" (status={status_code})" if isinstance(status_code, int) else ""
    cause = str(exc)
    return APIError(
        f"{msg}{status_note}: {cause}" if cause else f"{msg}{status_note}",
        hint=_auth_hint(provider, status_code),
        status_code=status_code,
        provider=provider,
        phase=phase,
    )
