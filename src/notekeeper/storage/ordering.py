"""Display order for notes.

Every note carries a float order key; the list order is ``(key, id)``
ascending, so equal keys are still totally ordered. Moving a note only
assigns it a new key between its new neighbours (midpoint), so other notes
keep their keys. When two neighbours get too close to split, the whole list
is renumbered to evenly spaced keys.
"""
import bisect
import logging
import math
from typing import Dict, List, Mapping, Optional, Tuple

from notekeeper.exceptions import NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_SPACING = 1.0
DEFAULT_MIN_GAP = 1e-9


class OrderingEngine:
    """Total order over note ids backed by dense float keys.

    Args:
        spacing: Distance between keys after a renumbering pass, and the step
            used when placing a note beyond the head or tail.
        min_gap: Neighbour gap below which the list is renumbered before a
            note is inserted between them.
    """

    def __init__(
        self,
        spacing: float = DEFAULT_SPACING,
        min_gap: float = DEFAULT_MIN_GAP,
    ) -> None:
        if spacing <= 0 or not 0 < min_gap < spacing:
            raise ValueError("need 0 < min_gap < spacing")
        self.spacing = spacing
        self.min_gap = min_gap
        self._keys: Dict[str, float] = {}
        # Sorted (key, id) pairs; list position == display position
        self._sorted: List[Tuple[float, str]] = []
        self.renumber_count = 0

    def __len__(self) -> int:
        return len(self._sorted)

    def __contains__(self, note_id: object) -> bool:
        return note_id in self._keys

    def load(self, keys: Mapping[str, float]) -> None:
        """Replace the current order with persisted ``id -> key`` pairs."""
        for note_id, key in keys.items():
            if not math.isfinite(key):
                raise ValueError(f"order key for '{note_id}' is not finite")
        self._keys = dict(keys)
        self._sorted = sorted((key, note_id) for note_id, key in self._keys.items())

    def clear(self) -> None:
        self._keys.clear()
        self._sorted.clear()

    def key_of(self, note_id: str) -> float:
        try:
            return self._keys[note_id]
        except KeyError:
            raise NotFoundError(note_id) from None

    def keys(self) -> Dict[str, float]:
        """Copy of the current ``id -> key`` mapping."""
        return dict(self._keys)

    def position_of(self, note_id: str) -> int:
        entry = (self.key_of(note_id), note_id)
        return bisect.bisect_left(self._sorted, entry)

    def list_in_order(self) -> List[str]:
        """All ids in display order."""
        return [note_id for _, note_id in self._sorted]

    def insert(self, note_id: str, position: Optional[int] = None) -> float:
        """Add a new id at ``position`` (clamped; ``None`` appends).

        Returns:
            The key assigned to the new id.
        """
        if note_id in self._keys:
            raise ValueError(f"'{note_id}' is already ordered")
        if position is None:
            position = len(self._sorted)
        key = self._key_for_position(self._clamp(position, len(self._sorted)))
        self._place(note_id, key)
        return key

    def remove(self, note_id: str) -> None:
        """Drop an id from the order.

        Raises:
            NotFoundError: If the id is not ordered.
        """
        entry = (self.key_of(note_id), note_id)
        index = bisect.bisect_left(self._sorted, entry)
        del self._sorted[index]
        del self._keys[note_id]

    def move(self, note_id: str, target_position: int) -> float:
        """Move an id so it ends up at ``target_position`` in the list.

        Positions outside the list are clamped to the head or tail. The
        relative order of every other pair of ids is unchanged.

        Returns:
            The id's new key.

        Raises:
            NotFoundError: If the id is not ordered.
        """
        if note_id not in self._keys:
            raise NotFoundError(note_id)
        target = self._clamp(target_position, len(self._sorted) - 1)
        if self.position_of(note_id) == target:
            return self._keys[note_id]
        self.remove(note_id)
        key = self._key_for_position(target)
        self._place(note_id, key)
        return key

    def renumber(self) -> None:
        """Reassign evenly spaced keys in current order (O(n))."""
        self._sorted = [
            (index * self.spacing, note_id)
            for index, (_, note_id) in enumerate(self._sorted)
        ]
        self._keys = {note_id: key for key, note_id in self._sorted}
        self.renumber_count += 1
        logger.debug(f"Renumbered {len(self._sorted)} order keys")

    @staticmethod
    def _clamp(position: int, upper: int) -> int:
        return max(0, min(position, max(upper, 0)))

    def _place(self, note_id: str, key: float) -> None:
        self._keys[note_id] = key
        bisect.insort(self._sorted, (key, note_id))

    def _key_for_position(self, position: int) -> float:
        """Key that lands a new entry at ``position`` among the current entries."""
        if not self._sorted:
            return 0.0
        if position == 0:
            if not self._sorted[0][0] - self.spacing < self._sorted[0][0]:
                self.renumber()
            return self._sorted[0][0] - self.spacing
        if position >= len(self._sorted):
            if not self._sorted[-1][0] + self.spacing > self._sorted[-1][0]:
                self.renumber()
            return self._sorted[-1][0] + self.spacing

        key = self._midpoint(position)
        if key is None:
            self.renumber()
            key = self._midpoint(position)
            if key is None:
                raise ArithmeticError("no representable key between neighbours")
        return key

    def _midpoint(self, position: int) -> Optional[float]:
        low = self._sorted[position - 1][0]
        high = self._sorted[position][0]
        if high - low < self.min_gap:
            return None
        mid = low + (high - low) / 2
        if not low < mid < high:
            return None
        return mid
