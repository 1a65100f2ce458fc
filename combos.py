import bisect
from typing import Any, Callable, Dict, List, NamedTuple, Sequence

import numpy as np

Layer = Dict[str, Any]


class Assignment(NamedTuple):
    """One element chosen for one layer of a combo."""

    id: int
    rarity: float
    element: str


Combo = List[Assignment]


def is_ordered(combo: Sequence[Assignment]) -> bool:
    """Whether layer ids strictly ascend along the combo."""
    return all(a.id < b.id for a, b in zip(combo, combo[1:]))


def get_all_combos(layers: Sequence[Layer]) -> List[Combo]:
    """Expand layers into every combination where each layer is optional.

    Layers are walked in order. Every combo found so far is extended with each
    element of the current layer, then one singleton per element is added for
    the case where nothing before it was chosen. Combos that skip the current
    layer are kept as they are.

    Args:
        layers: Layer descriptors ordered by ascending id

    Returns:
        All prod(1 + k_i) - 1 combos, each ordered by layer id
    """
    combos: List[Combo] = []

    for layer in layers:
        singles = [
            [Assignment(layer["id"], layer["rarity"], element)]
            for element in layer["elements"]
        ]
        if not combos:
            combos = singles
            continue

        new_combos = [combo + single for combo in combos for single in singles]
        combos = combos + new_combos + singles

    return combos


def count_combinations(layers: Sequence[Layer]) -> int:
    """Get the number of combos `get_all_combos` yields for these layers."""
    return int(np.prod([1 + len(layer["elements"]) for layer in layers])) - 1


def get_required_combos(required: Sequence[Layer]) -> List[Combo]:
    """Generate required bundles, keeping only those covering every required layer."""
    req_combos = get_all_combos(required)

    # A partial bundle never stands on its own
    if len(required) > 1:
        req_combos = [combo for combo in req_combos if len(combo) == len(required)]

    return req_combos


def insertion_index(combo: Sequence[Assignment], layer_id: int) -> int:
    """Position of the first assignment whose layer id exceeds `layer_id`.

    `combo` must be sorted by layer id.
    """
    assert is_ordered(combo), "combo is not sorted by layer id"
    return bisect.bisect_right([assignment.id for assignment in combo], layer_id)


def splice(combo: Combo, bundle: Sequence[Assignment]) -> Combo:
    """Insert a required bundle into a combo, keeping layer ids ascending.

    Required elements are never rarity-constrained, so they enter with rarity 1.
    """
    merged = list(combo)
    for assignment in bundle:
        idx = insertion_index(merged, assignment.id)
        merged.insert(idx, assignment._replace(rarity=1))
    return merged


def add_required(
    combos: Sequence[Combo],
    req_combos: Sequence[Combo],
    exists: Callable[[Combo], bool],
) -> List[List[Combo]]:
    """Merge every required bundle into every combo.

    Args:
        combos: Combos of optional layers
        req_combos: Full required bundles
        exists: Predicate telling whether a merged combo was already rendered

    Returns:
        One group of merged combos per source combo, in source order. Source
        combos with no surviving merge are dropped, so no bundles means no
        groups at all.
    """
    groups = []

    for combo in combos:
        merged = []
        for bundle in req_combos:
            candidate = splice(combo, bundle)
            if exists(candidate):
                continue
            merged.append(candidate)

        if merged:
            groups.append(merged)

    return groups
