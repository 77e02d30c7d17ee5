"""Cooperative build cancellation.

A token is polled at fixed points of a build rather than preempting it, so an
already running bundler invocation or output write always completes.
"""

from __future__ import annotations

DEFAULT_ABORT_REASON = "Build aborted"


class AbortError(Exception):
    """Raised at a poll point when the build was cancelled."""

    def __init__(self, reason: str = DEFAULT_ABORT_REASON, code: str = "aborted") -> None:
        super().__init__(reason)
        self.reason = reason
        self.code = code


class CancelToken:
    """Cancellation flag shared between the caller and a running build."""

    def __init__(self) -> None:
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = DEFAULT_ABORT_REASON) -> None:
        """Request cancellation; the first reason wins."""
        if self._reason is None:
            self._reason = reason

    def raise_if_cancelled(self) -> None:
        """Raise AbortError if cancellation was requested."""
        if self._reason is not None:
            raise AbortError(self._reason)


__all__ = ["AbortError", "CancelToken"]
