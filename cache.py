import hashlib
import json
import pathlib
import threading
from typing import Dict, Iterable, Optional, Tuple

# Anything holding ordered (id, rarity, element) assignments
ComboLike = Iterable[Tuple[int, float, str]]


def fingerprint(combo: ComboLike) -> str:
    """Stable digest of the ordered (layer id, element) pairs of a combo.

    Rarity does not take part: two combos with the same assignments collide
    whatever weights they carry.
    """
    canonical = json.dumps(
        [[layer_id, element] for layer_id, _, element in combo],
        separators=(",", ":"),
    )
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


class ComboCache:
    """Fingerprints of rendered combos mapped to their rarity weight product.

    Entries are only ever added, so a combo found here is never rendered again.
    """

    def __init__(self, entries: Optional[Dict[str, float]] = None):
        self._entries: Dict[str, float] = dict(entries or {})
        self._lock = threading.Lock()

    @classmethod
    def load(cls, path: pathlib.Path) -> "ComboCache":
        """Read a cache file. A missing or corrupt file gives an empty cache."""
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            return cls()

        if not isinstance(data, dict):
            return cls()

        try:
            return cls({str(fp): float(rarity) for fp, rarity in data.items()})
        except (TypeError, ValueError):
            return cls()

    def exists(self, fp: str) -> bool:
        return fp in self._entries

    def contains(self, combo: ComboLike) -> bool:
        """Whether this combo was rendered already."""
        return self.exists(fingerprint(combo))

    def add(self, fp: str, rarity: float) -> None:
        with self._lock:
            self._entries.setdefault(fp, rarity)

    def to_dict(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._entries)

    def save(self, path: pathlib.Path) -> None:
        """Write the whole cache as one JSON object. Raises OSError on failure."""
        data = self.to_dict()
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fp: str) -> bool:
        return self.exists(fp)
