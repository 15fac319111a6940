"""State and log reporting around remote operations.

The host application supplies a ``StateBar`` (a transient "in progress"
indicator) and a ``Logger`` (an append-only output log). ``FileInterface``
talks to both through an ``OperationReporter``.

The state bar belongs to one connection, not to one operation: two operations
running concurrently on the same connection overwrite each other's text, and
whichever settles first clears it for both.
"""

from typing import Callable, Optional, Protocol, runtime_checkable


@runtime_checkable
class StateBar(Protocol):
    """Transient progress indicator."""

    def set(self, state: str) -> None:
        ...

    def close(self) -> None:
        """Hide the indicator. Must be safe to call when nothing is shown."""
        ...


@runtime_checkable
class Logger(Protocol):
    """Fire-and-forget, append-only message sink."""

    def message(self, text: str) -> None:
        ...


class StatusBar:
    """Default in-process StateBar.

    Keeps the current text and forwards every change to an optional listener,
    which receives ``None`` when the bar is cleared.
    """

    def __init__(self, listener: Optional[Callable[[Optional[str]], None]] = None) -> None:
        self._listener = listener
        self._text: Optional[str] = None
        self._disposed = False

    @property
    def text(self) -> Optional[str]:
        return self._text

    @property
    def visible(self) -> bool:
        return self._text is not None

    def set(self, state: str) -> None:
        if self._disposed:
            return
        self._text = state
        if self._listener:
            self._listener(state)

    def close(self) -> None:
        if self._text is None:
            return
        self._text = None
        if self._listener:
            self._listener(None)

    def dispose(self) -> None:
        if self._disposed:
            return
        self.close()
        self._disposed = True


class OperationReporter:
    """Announces, logs and settles operations for one connection."""

    def __init__(
        self,
        state_bar: StateBar,
        logger: Logger,
        display_name: Optional[str] = None,
    ) -> None:
        self.state_bar = state_bar
        self.logger = logger
        self.display_name = display_name

    def _format(self, text: str) -> str:
        return f"{self.display_name}> {text}" if self.display_name else text

    def announce(self, text: str) -> None:
        message = self._format(text)
        self.state_bar.set(message)
        self.logger.message(message)

    def log(self, text: str) -> None:
        self.logger.message(self._format(text))

    def settle(self) -> None:
        self.state_bar.close()
