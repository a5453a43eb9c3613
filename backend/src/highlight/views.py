"""Server-side view models that mirror what each dashboard view highlights."""
from typing import Dict, Iterable, List, Optional

from highlight.synchronizer import HighlightEvent, Treatment
from models.sequences import SimilarSequence


class SequenceView:
    """
    A view holding a set of sequence ids and the treatment applied to each.

    Events for ids the view does not hold are ignored.
    """

    kind = "view"

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.kind
        self._sequences: Dict[str, SimilarSequence] = {}
        self.highlights: Dict[str, Treatment] = {}

    def load(self, sequences: Iterable[SimilarSequence]) -> None:
        """Replace the view's records; all highlights are reset."""
        self._sequences = {seq.id: seq for seq in sequences}
        self.highlights = {}

    def clear(self) -> None:
        self._sequences = {}
        self.highlights = {}

    def holds(self, sequence_id: str) -> bool:
        return sequence_id in self._sequences

    @property
    def ids(self) -> List[str]:
        return list(self._sequences)

    def __len__(self) -> int:
        return len(self._sequences)

    def treatment(self, sequence_id: str) -> Treatment:
        return self.highlights.get(sequence_id, Treatment.NONE)

    def on_highlight(self, event: HighlightEvent) -> None:
        if not self.holds(event.sequence_id):
            return
        if event.treatment == Treatment.NONE:
            self.highlights.pop(event.sequence_id, None)
        else:
            self.highlights[event.sequence_id] = event.treatment


class ScatterView(SequenceView):
    """Projection scatter plot of the contextual set."""
    kind = "scatter"


class MapView(SequenceView):
    """Geographic map of the map subset."""
    kind = "map"


class DetailList(SequenceView):
    """Ranked detail list of the top similar sequences."""
    kind = "details"

    @property
    def ids(self) -> List[str]:
        return [seq.id for seq in sorted(self._sequences.values(), key=lambda s: s.rank)]
