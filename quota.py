import threading
from collections import defaultdict
from typing import Dict, Optional, Sequence

import numpy as np

from combos import Assignment


class QuotaTracker:
    """Per-layer render counts for rarity-constrained assignments.

    The quota of a layer is floor(max_combos * rarity). Checking and counting
    happen under one lock so concurrent attempts never overshoot a quota.
    """

    def __init__(self, max_combos: int):
        self.max_combos = max_combos
        self.counts: Dict[int, int] = defaultdict(int)
        self._lock = threading.Lock()

    def max_rares(self, rarity: float) -> int:
        return int(np.floor(self.max_combos * rarity))

    def reserve(self, combo: Sequence[Assignment]) -> Optional[float]:
        """Count a combo against the quotas of its constrained layers.

        Returns:
            The product of the constrained rarities, or None when any of them
            is over quota. A rejected combo leaves every count untouched.
        """
        constrained = [a for a in combo if a.rarity < 1]

        with self._lock:
            for assignment in constrained:
                max_rares = self.max_rares(assignment.rarity)
                if max_rares == 0 or self.counts[assignment.id] + 1 > max_rares:
                    return None

            combo_rarity = 1.0
            for assignment in constrained:
                self.counts[assignment.id] += 1
                combo_rarity *= assignment.rarity

        return combo_rarity

    def release(self, combo: Sequence[Assignment]) -> None:
        """Give back a reservation whose render did not complete."""
        with self._lock:
            for assignment in combo:
                if assignment.rarity < 1:
                    self.counts[assignment.id] -= 1
