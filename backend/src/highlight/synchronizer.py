"""
Cross-view highlight synchronization.

Every view showing similar sequences (scatter plot, map, detail list) registers
on a HighlightBus. The synchronizer owns one HighlightState per sequence id and
broadcasts a HighlightEvent whenever the visible treatment of an id changes.
At most one id is clicked at a time, and a clicked highlight always wins over
hover.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from utils.logger import get_logger

logger = get_logger(__name__)


class Treatment(str, Enum):
    """Visual treatment applied to a sequence in every view."""
    NONE = "none"
    HOVER = "hover"
    CLICKED = "clicked"


@dataclass
class HighlightState:
    """Hover and click flags of one sequence id."""
    hovered: bool = False
    clicked: bool = False

    @property
    def effective(self) -> bool:
        return self.clicked or self.hovered

    @property
    def treatment(self) -> Treatment:
        if self.clicked:
            return Treatment.CLICKED
        if self.hovered:
            return Treatment.HOVER
        return Treatment.NONE


@dataclass(frozen=True)
class HighlightEvent:
    """Treatment change of one id, delivered to every registered view."""
    sequence_id: str
    treatment: Treatment
    source: str = "unknown"


Listener = Callable[[HighlightEvent], None]


class HighlightBus:
    """Synchronous fan-out of highlight events to registered views."""

    def __init__(self):
        self._listeners: Dict[str, Listener] = {}

    def register(self, name: str, listener: Listener) -> None:
        """Register (or replace) the listener called `name`."""
        if name in self._listeners:
            logger.debug(f"Replacing highlight listener {name}")
        self._listeners[name] = listener

    def unregister(self, name: str) -> None:
        self._listeners.pop(name, None)

    @property
    def listeners(self) -> List[str]:
        return list(self._listeners)

    def emit(self, event: HighlightEvent) -> None:
        """Deliver event to every listener, in registration order."""
        for listener in list(self._listeners.values()):
            listener(event)


class HighlightSynchronizer:
    """Owns the highlight state of every sequence and keeps the views consistent."""

    def __init__(self, bus: Optional[HighlightBus] = None):
        self.bus = bus or HighlightBus()
        self._states: Dict[str, HighlightState] = {}

    def state(self, sequence_id: str) -> HighlightState:
        """Copy of the state of sequence_id (all flags off if never touched)."""
        current = self._states.get(sequence_id)
        if current is None:
            return HighlightState()
        return HighlightState(hovered=current.hovered, clicked=current.clicked)

    def effective(self, sequence_id: str) -> bool:
        return self.state(sequence_id).effective

    def treatment(self, sequence_id: str) -> Treatment:
        return self.state(sequence_id).treatment

    @property
    def clicked_id(self) -> Optional[str]:
        """The currently selected id, if any."""
        for sequence_id, state in self._states.items():
            if state.clicked:
                return sequence_id
        return None

    @property
    def hovered_ids(self) -> List[str]:
        return [sequence_id for sequence_id, state in self._states.items() if state.hovered]

    def hover(self, sequence_id: str, on: bool, source: str = "unknown") -> Treatment:
        """
        Set or clear the hover flag of sequence_id.

        Clearing hover never removes a clicked highlight.

        Returns:
            The id's treatment after the change
        """
        state = self._states.setdefault(sequence_id, HighlightState())
        before = state.treatment
        state.hovered = on
        self._publish(sequence_id, before, source)
        return state.treatment

    def click(self, sequence_id: str, source: str = "unknown") -> Treatment:
        """
        Toggle the click selection of sequence_id.

        Selecting an id clears every other id's selection and this id's hover
        flag, so deselecting it later leaves no stale hover behind.

        Returns:
            The id's treatment after the change
        """
        state = self._states.setdefault(sequence_id, HighlightState())
        if state.clicked:
            before = state.treatment
            state.clicked = False
            self._publish(sequence_id, before, source)
            return state.treatment

        for other_id, other in list(self._states.items()):
            if other_id != sequence_id and other.clicked:
                other_before = other.treatment
                other.clicked = False
                self._publish(other_id, other_before, source)

        before = state.treatment
        state.clicked = True
        state.hovered = False
        self._publish(sequence_id, before, source)
        return state.treatment

    def clear(self, source: str = "unknown") -> None:
        """Remove every highlight, notifying views of each id that was visible."""
        states = self._states
        self._states = {}
        for sequence_id, state in states.items():
            if state.treatment != Treatment.NONE:
                self.bus.emit(HighlightEvent(sequence_id, Treatment.NONE, source))

    def snapshot(self) -> Dict[str, Treatment]:
        """Treatment of every id that is currently highlighted."""
        return {
            sequence_id: state.treatment
            for sequence_id, state in self._states.items()
            if state.treatment != Treatment.NONE
        }

    def _publish(self, sequence_id: str, before: Treatment, source: str) -> None:
        after = self._states[sequence_id].treatment
        if after == Treatment.NONE:
            # Only highlighted ids keep an entry
            del self._states[sequence_id]
        if after != before:
            self.bus.emit(HighlightEvent(sequence_id, after, source))
