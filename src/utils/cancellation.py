"""Cooperative cancellation for long-running refine/chunk cycles.

Stages check the token at natural iteration boundaries (per block, per
unit, per chunk).  Because every stage accumulates into local buffers and
only returns finished immutable records, aborting at a check point leaves
no shared state half-written.
"""

from __future__ import annotations

import threading

from src.utils.errors import ProcessingCancelledError


class CancellationToken:
    """Thread-safe cancellation flag shared between a caller and a stage."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str | None = None, file_name: str | None = None) -> None:
        """Raise :class:`ProcessingCancelledError` when cancellation was requested."""
        if self._event.is_set():
            raise ProcessingCancelledError(stage=stage, file_name=file_name)


def check_cancelled(
    token: CancellationToken | None, stage: str, file_name: str | None = None
) -> None:
    """No-op for ``None``; otherwise delegate to :meth:`CancellationToken.raise_if_cancelled`."""
    if token is not None:
        token.raise_if_cancelled(stage=stage, file_name=file_name)
