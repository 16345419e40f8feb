"""
Environment signals: network reachability and application visibility.

The host application reports changes through set_online()/set_visible();
the engine registers listeners to drain the queue and steer the poller.
Listeners only fire on an actual change.
"""

from typing import Callable

import structlog


logger = structlog.get_logger(__name__)

FlagListener = Callable[[bool], None]


class ConnectivityMonitor:
    """Online/visible flags with change listeners."""

    def __init__(self, online: bool = True, visible: bool = True):
        self._online = online
        self._visible = visible
        self._online_listeners: list[FlagListener] = []
        self._visibility_listeners: list[FlagListener] = []

    @property
    def online(self) -> bool:
        return self._online

    @property
    def visible(self) -> bool:
        return self._visible

    def add_online_listener(self, listener: FlagListener) -> None:
        self._online_listeners.append(listener)

    def add_visibility_listener(self, listener: FlagListener) -> None:
        self._visibility_listeners.append(listener)

    def clear_listeners(self) -> None:
        self._online_listeners.clear()
        self._visibility_listeners.clear()

    def set_online(self, online: bool) -> bool:
        """
        Record network reachability.

        Returns:
            True if the flag changed (and listeners were notified)
        """
        if online == self._online:
            return False
        self._online = online
        logger.info("connectivity_changed", online=online)
        self._notify(self._online_listeners, online)
        return True

    def set_visible(self, visible: bool) -> bool:
        """Record application visibility. Returns True if it changed."""
        if visible == self._visible:
            return False
        self._visible = visible
        logger.debug("visibility_changed", visible=visible)
        self._notify(self._visibility_listeners, visible)
        return True

    @staticmethod
    def _notify(listeners: list[FlagListener], value: bool) -> None:
        for listener in list(listeners):
            try:
                listener(value)
            except Exception as e:
                logger.error(
                    "connectivity_listener_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
