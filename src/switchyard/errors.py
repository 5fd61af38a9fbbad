"""Exception hierarchy for Switchyard.

Exceptions are raised at construction time (configuration) and inside
adapters. The orchestrator entry points never raise for per-request
failures; those surface as failed results instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class SwitchyardError(Exception):
    """Base exception for all Switchyard errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(SwitchyardError):
    """Configuration validation or resolution failed."""


class TemplateError(SwitchyardError):
    """A request-body template could not be rendered into a JSON object."""


class CapabilityError(SwitchyardError):
    """An optional adapter capability was requested but is not available."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        provider: str | None = None,
        capability: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.provider = provider
        self.capability = capability


class APIError(SwitchyardError):
    """A provider call failed.

    Adapters attach the HTTP status code and call phase so failures can be
    reported consistently, whatever SDK raised them.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        status_code: int | None = None,
        provider: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = status_code
        self.provider = provider
        self.phase = phase


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
