"""Anchor state machine.

Manages the lifecycle: raised → dropping → dropped → raising → raised.
The full AnchorRecord is persisted after every mutation so that a restart
with the anchor still down resumes monitoring without re-dropping.
"""
from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from helmwatch.models.anchor import DEFAULT_MAX_RADIUS_M, AnchorRecord
from helmwatch.models.base import AnchorStateEnum
from helmwatch.models.vessel import Position

logger = logging.getLogger(__name__)

_MONITORED_STATES = frozenset({AnchorStateEnum.DROPPING, AnchorStateEnum.DROPPED})


class AnchorTransitionError(Exception):
    """Lifecycle operation not allowed from the current state."""


class AnchorStateStore:
    """JSON-file persistence for the single anchor record."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> Optional[AnchorRecord]:
        """Return the persisted record, or None when missing or unreadable."""
        if not self.path.exists():
            return None
        try:
            return AnchorRecord.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Could not load anchor state from %s: %s", self.path, exc)
            return None

    def save(self, record: AnchorRecord) -> bool:
        """Write atomically (temp file + rename). Returns False on failure."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".anchor-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(record.model_dump_json(indent=2))
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.warning("Could not save anchor state to %s: %s", self.path, exc)
            return False
        return True


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnchorStateMachine:
    """Owns the AnchorRecord; all mutation goes through the lifecycle methods."""

    def __init__(
        self,
        store: Optional[AnchorStateStore] = None,
        default_radius: float = DEFAULT_MAX_RADIUS_M,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._default_radius = default_radius
        self._clock = clock
        self._record = AnchorRecord(max_radius=default_radius)

    # ── Persistence ───────────────────────────────────────────────────────────

    def load(self) -> None:
        """Load persisted state; missing or corrupt state falls back to raised."""
        record = self._store.load() if self._store else None
        if record is None:
            self._record = AnchorRecord(max_radius=self._default_radius)
            return
        self._record = record
        logger.debug("Anchor state loaded: %s", record.state.value)

    def save(self) -> None:
        if self._store is not None:
            self._store.save(self._record)

    # ── Read accessors ────────────────────────────────────────────────────────

    @property
    def state(self) -> AnchorStateEnum:
        return self._record.state

    @property
    def position(self) -> Optional[Position]:
        return self._record.position

    @property
    def max_radius(self) -> float:
        return self._record.max_radius

    @property
    def rode_length(self) -> Optional[float]:
        return self._record.rode_length

    @property
    def anchor_depth(self) -> Optional[float]:
        return self._record.anchor_depth

    @property
    def dropped_at(self) -> Optional[datetime]:
        return self._record.dropped_at

    def is_dropped(self) -> bool:
        return self._record.state == AnchorStateEnum.DROPPED

    def is_monitoring(self) -> bool:
        return self._record.state in _MONITORED_STATES

    def snapshot(self) -> AnchorRecord:
        """Deep copy of the record; callers cannot mutate internal state through it."""
        return self._record.model_copy(deep=True)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def drop(self, position: Position) -> None:
        """raised → dropping; records the drop point."""
        self._require({AnchorStateEnum.RAISED}, "drop")
        self._commit(
            state=AnchorStateEnum.DROPPING,
            position=position,
            dropped_at=self._clock(),
            raised_at=None,
        )
        logger.debug("Anchor state → DROPPING")

    def confirm_dropped(self, position: Optional[Position] = None) -> None:
        """Anchor is set on the bottom; optionally refine its position."""
        self._require(_MONITORED_STATES, "confirm dropped")
        changes: dict = {"state": AnchorStateEnum.DROPPED}
        if position is not None:
            changes["position"] = position
        self._commit(**changes)
        logger.debug("Anchor state → DROPPED")

    def raise_anchor(self) -> None:
        self._require(_MONITORED_STATES, "raise")
        self._commit(state=AnchorStateEnum.RAISING)
        logger.debug("Anchor state → RAISING")

    def confirm_raised(self) -> None:
        self._require({AnchorStateEnum.RAISING}, "confirm raised")
        self._commit(
            state=AnchorStateEnum.RAISED,
            raised_at=self._clock(),
            position=None,
            rode_length=None,
            anchor_depth=None,
        )
        logger.debug("Anchor state → RAISED")

    def reposition(self, position: Position) -> None:
        """Move the recorded anchor position without changing state."""
        self._require(_MONITORED_STATES, "reposition")
        self._commit(position=position)
        logger.debug("Anchor position updated")

    def set_radius(self, radius_m: float) -> None:
        if not radius_m > 0:
            raise ValueError("Radius must be a positive number (metres)")
        self._commit(max_radius=float(radius_m))

    def set_rode(self, rode_length: float, anchor_depth: float) -> None:
        if not (rode_length > 0 and anchor_depth > 0):
            raise ValueError("rode_length and anchor_depth must be positive numbers (metres)")
        self._commit(rode_length=float(rode_length), anchor_depth=float(anchor_depth))

    def _require(self, allowed: set | frozenset, operation: str) -> None:
        if self._record.state not in allowed:
            raise AnchorTransitionError(
                f"Cannot {operation} while anchor is {self._record.state.value}"
            )

    def _commit(self, **changes) -> None:
        self._record = self._record.model_copy(update=changes)
        self.save()
