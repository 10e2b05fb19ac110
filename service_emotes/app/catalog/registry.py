"""
Candidate registry for the Emote service.
"""

import threading
from typing import Dict, Iterable, List, Optional, Tuple

from shared.logging import get_logger
from .models import CandidateEntry


SEED_CANDIDATES: Tuple[CandidateEntry, ...] = (
    # Official Roblox emotes
    CandidateEntry("507770677", "Salute", "Gesture"),
    CandidateEntry("507777268", "Point", "Gesture"),
    CandidateEntry("507770451", "Wave", "Gesture"),
    CandidateEntry("507771019", "Laugh", "Funny"),
    CandidateEntry("507771955", "Dance", "Dance"),
    CandidateEntry("507770818", "Cheer", "Action"),
    CandidateEntry("507766388", "Stadium", "Action"),
    CandidateEntry("507766951", "Confused", "Funny"),
    CandidateEntry("507766666", "Applaud", "Gesture"),
    CandidateEntry("507767015", "Sit", "Pose"),
    CandidateEntry("507769133", "Tilt", "Pose"),
    CandidateEntry("507770239", "Disagree", "Gesture"),
    CandidateEntry("507771378", "Hello", "Gesture"),

    # Popular UGC emotes
    CandidateEntry("4841397952", "Griddy", "Dance"),
    CandidateEntry("4265162094", "Zombie Walk", "Dance"),
    CandidateEntry("4049037604", "Orange Justice", "Dance"),
    CandidateEntry("4555782893", "Penguin", "Funny"),
    CandidateEntry("4555808220", "Chicken", "Funny"),
)


class CandidateRegistry:
    """Insertion-ordered, append-only set of candidate entries."""

    def __init__(self, seed: Optional[Iterable[CandidateEntry]] = None):
        self.logger = get_logger("emotes.registry")
        self._lock = threading.Lock()
        self._entries: List[CandidateEntry] = []
        self._index: Dict[str, CandidateEntry] = {}

        for entry in (SEED_CANDIDATES if seed is None else seed):
            self.add(entry)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, asset_id: object) -> bool:
        with self._lock:
            return asset_id in self._index

    def add(self, entry: CandidateEntry) -> bool:
        """Append ``entry`` unless its id is already known.

        Returns True when the entry was added.
        """
        with self._lock:
            if entry.id in self._index:
                return False
            self._entries.append(entry)
            self._index[entry.id] = entry

        self.logger.debug("Candidate registered", emote_id=entry.id, category=entry.category)
        return True

    def snapshot(self) -> Tuple[CandidateEntry, ...]:
        """Read-only copy of the entries in insertion order."""
        with self._lock:
            return tuple(self._entries)
