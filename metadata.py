import json
import pathlib
from copy import deepcopy
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
from progressbar import progressbar

from config import (
    BASE_IMAGE_URL,
    BASE_NAME,
    BUILD_PATH,
    DESCRIPTION,
    OUTPUT_FORMAT,
    TRAITS_FILE,
)

# Constants
NONE_VALUE = "none"


def create_base_metadata() -> Dict[str, Any]:
    """Create base metadata template."""
    return {
        "name": BASE_NAME,
        "description": DESCRIPTION,
        "image": BASE_IMAGE_URL,
        "attributes": [],
    }


def clean_trait(element: str) -> str:
    """Drop the file extension of an element."""
    return pathlib.PurePath(element).stem


def traits_frame(
    rendered: Sequence[Tuple[int, Sequence]], catalog: Sequence[Dict[str, Any]]
) -> pd.DataFrame:
    """One row per rendered combo, one column per layer.

    Args:
        rendered: (combo number, combo) pairs
        catalog: Every layer a combo may reference

    Returns:
        DataFrame indexed by combo number, absent layers set to "none"
    """
    ordered = sorted(catalog, key=lambda layer: layer["id"])
    names = {layer["id"]: layer["name"] for layer in ordered}

    rows = []
    for _, combo in rendered:
        row = {name: NONE_VALUE for name in names.values()}
        for assignment in combo:
            row[names[assignment.id]] = clean_trait(assignment.element)
        rows.append(row)

    df = pd.DataFrame(
        rows,
        index=pd.Index([combo_num for combo_num, _ in rendered], name="combo"),
        columns=list(names.values()),
    )
    return df


def load_traits(build_path: pathlib.Path) -> Optional[pd.DataFrame]:
    """Load the traits ledger, None if no combo was ever recorded."""
    traits_path = build_path / TRAITS_FILE
    if not traits_path.exists():
        return None
    df = pd.read_csv(traits_path, index_col=0, dtype=str, keep_default_na=False)
    df.index = df.index.astype(int)
    return df


def update_traits(
    build_path: pathlib.Path,
    rendered: Sequence[Tuple[int, Sequence]],
    catalog: Sequence[Dict[str, Any]],
) -> Optional[pd.DataFrame]:
    """Append the combos rendered by a pass to the traits ledger."""
    previous = load_traits(build_path)
    if not rendered:
        return previous

    df = traits_frame(rendered, catalog)
    if previous is not None:
        df = pd.concat([previous, df])
        # Later renders overwrite files with the same number
        df = df[~df.index.duplicated(keep="last")].sort_index()
        df = df.fillna(NONE_VALUE)

    df.to_csv(build_path / TRAITS_FILE)
    return df


def generate_rarity_stats(
    traits_df: pd.DataFrame,
    catalog: Sequence[Dict[str, Any]],
    quotas=None,
) -> Dict[str, Dict[str, float]]:
    """Display the share of rendered combos using each element of each layer.

    Returns:
        Per layer, the share of every value seen in the ledger
    """
    stats = {}
    total = len(traits_df)

    for layer in catalog:
        name = layer["name"]
        if name not in traits_df.columns or total == 0:
            continue

        shares = (traits_df[name].value_counts() / total).to_dict()
        stats[name] = {str(k): float(v) for k, v in shares.items()}

        print(f"\n{name.upper()}:")
        print(f"  Actual: {stats[name]}")

        if quotas is not None and layer["rarity"] < 1:
            used = quotas.counts.get(layer["id"], 0)
            print(
                f"  Quota this run: {used}/{quotas.max_rares(layer['rarity'])} "
                f"(rarity: {layer['rarity']})"
            )

    return stats


def generate_json_metadata(
    build_path: pathlib.Path, traits_df: pd.DataFrame
) -> pathlib.Path:
    """Generate a JSON metadata file for every rendered combo."""
    metadata_dir = build_path / "json"
    metadata_dir.mkdir(exist_ok=True)

    base_metadata = create_base_metadata()

    print(f"Generating JSON metadata for {len(traits_df)} combos...")

    for combo_num, row in progressbar(traits_df.iterrows(), max_value=len(traits_df)):
        item_metadata = deepcopy(base_metadata)
        item_metadata["name"] = f"{BASE_NAME} #{combo_num}"
        item_metadata["image"] = f"{BASE_IMAGE_URL}/{combo_num}.{OUTPUT_FORMAT}"

        # Add traits (skip absent layers)
        attributes: List[Dict[str, str]] = item_metadata["attributes"]
        for trait_type, trait_value in row.items():
            if trait_value != NONE_VALUE:
                attributes.append({"trait_type": trait_type, "value": trait_value})

        json_file = metadata_dir / str(combo_num)
        with open(json_file, "w", encoding="utf-8") as f:
            json.dump(item_metadata, f, indent=2, ensure_ascii=False)

    return metadata_dir


def main() -> None:
    """Generate JSON metadata files for every rendered combo."""
    traits_df = load_traits(BUILD_PATH)
    if traits_df is None:
        print(f"No {TRAITS_FILE} found in {BUILD_PATH}, render some combos first")
        return

    metadata_dir = generate_json_metadata(BUILD_PATH, traits_df)

    print(f"✅ Metadata generated in {metadata_dir}")


if __name__ == "__main__":
    main()
