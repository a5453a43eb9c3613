"""Cross-view highlight synchronization."""
from highlight.synchronizer import (
    HighlightBus,
    HighlightEvent,
    HighlightState,
    HighlightSynchronizer,
    Treatment,
)
from highlight.views import DetailList, MapView, ScatterView, SequenceView

__all__ = [
    "HighlightBus",
    "HighlightEvent",
    "HighlightState",
    "HighlightSynchronizer",
    "Treatment",
    "DetailList",
    "MapView",
    "ScatterView",
    "SequenceView",
]
