"""Vessel operating mode (sailing, anchored, motoring, ...).

The anchor watch never owns the mode. It requests changes through a callback
and is told about changes made elsewhere through a listener.
"""
from __future__ import annotations

import logging
from typing import Callable

from helmwatch.models.base import OperatingModeEnum

logger = logging.getLogger(__name__)

ModeListener = Callable[[str], None]


class OperatingMode:
    def __init__(self, initial: OperatingModeEnum = OperatingModeEnum.SAILING) -> None:
        self._mode = initial
        self._listeners: list[ModeListener] = []

    @property
    def mode(self) -> OperatingModeEnum:
        return self._mode

    def add_listener(self, listener: ModeListener) -> None:
        self._listeners.append(listener)

    def set_mode(self, mode: str, notify: bool = True) -> OperatingModeEnum:
        """Change mode. Raises ValueError for unknown modes.

        ``notify=False`` is used when the change was requested by a listener
        itself, so it is not echoed back.
        """
        try:
            new_mode = OperatingModeEnum(mode)
        except ValueError:
            valid = ", ".join(m.value for m in OperatingModeEnum)
            raise ValueError(f"Invalid mode '{mode}'. Must be one of: {valid}") from None

        previous = self._mode
        self._mode = new_mode
        if previous != new_mode:
            logger.info("Operating mode %s → %s", previous.value, new_mode.value)
        if notify:
            for listener in list(self._listeners):
                try:
                    listener(new_mode.value)
                except Exception:
                    logger.exception("Mode listener failed for mode %s", new_mode.value)
        return new_mode
