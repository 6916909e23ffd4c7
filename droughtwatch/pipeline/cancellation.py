"""Cooperative cancellation and the one-run-per-location table."""

from __future__ import annotations

import enum
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from droughtwatch.errors import Cancelled
from droughtwatch.models import AnalysisWindow

logger = logging.getLogger(__name__)


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise Cancelled(f"run superseded before {stage}", context={"stage": stage})


class PipelineState(str, enum.Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    ALIGNING = "aligning"
    NORMALIZING = "normalizing"
    SCORING = "scoring"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({PipelineState.DONE, PipelineState.FAILED, PipelineState.CANCELLED})


@dataclass
class PipelineRun:
    """Handle for one ``analyze`` call."""

    window: AnalysisWindow
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    token: CancellationToken = field(default_factory=CancellationToken)
    state: PipelineState = PipelineState.IDLE
    location_key: Optional[str] = None
    failure: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def advance(self, state: PipelineState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"run {self.run_id} already {self.state.value}")
        logger.debug("run=%s %s → %s", self.run_id, self.state.value, state.value)
        self.state = state

    def fail(self, exc: BaseException) -> None:
        self.failure = getattr(exc, "kind", type(exc).__name__)
        if self.state not in TERMINAL_STATES:
            logger.debug("run=%s failed in %s: %s", self.run_id, self.state.value, self.failure)
            self.state = PipelineState.FAILED


class ActiveRunTable:
    """``Location.key`` → the run currently allowed to deliver a result."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._runs: Dict[str, PipelineRun] = {}

    def replace(self, key: str, run: PipelineRun) -> Optional[PipelineRun]:
        """Install ``run`` and cancel whatever it supersedes, atomically."""
        with self._lock:
            previous = self._runs.get(key)
            self._runs[key] = run
            if previous is not None:
                previous.token.cancel()
        if previous is not None:
            logger.info("run=%s supersedes run=%s for the same location", run.run_id, previous.run_id)
        return previous

    def release(self, key: str, run: PipelineRun) -> bool:
        """Drop ``run``'s entry; True if it was still current and not cancelled."""
        with self._lock:
            current = self._runs.get(key) is run
            if current:
                del self._runs[key]
            return current and not run.token.cancelled

    def snapshot(self) -> List[PipelineRun]:
        with self._lock:
            return list(self._runs.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)


__all__ = [
    "CancellationToken",
    "PipelineState",
    "PipelineRun",
    "ActiveRunTable",
    "TERMINAL_STATES",
]
