"""Shared fixtures: tiny catalogs and their PNG assets."""

import pathlib
from typing import Any, Callable, Dict, List

import pytest
from PIL import Image


def make_layer(layer_id, name, elements, rarity=1, dimensions=None) -> Dict[str, Any]:
    return {
        "id": layer_id,
        "name": name,
        "rarity": rarity,
        "elements": list(elements),
        "dimensions": dimensions or [0, 0, 4, 4],
    }


@pytest.fixture()
def layer_factory() -> Callable[..., Dict[str, Any]]:
    return make_layer


@pytest.fixture()
def write_assets(tmp_path: pathlib.Path) -> Callable[[List[Dict[str, Any]]], pathlib.Path]:
    """Write one small opaque PNG per element of every layer given."""
    assets_path = tmp_path / "Assets"

    def _write(catalog: List[Dict[str, Any]]) -> pathlib.Path:
        for i, layer in enumerate(catalog):
            layer_dir = assets_path / layer["name"]
            layer_dir.mkdir(parents=True, exist_ok=True)
            for j, element in enumerate(layer["elements"]):
                color = ((40 * i) % 256, (10 * j) % 256, 200, 255)
                Image.new("RGBA", (4, 4), color).save(layer_dir / element)
        return assets_path

    return _write


@pytest.fixture()
def build_path(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "Builds"
    path.mkdir()
    return path
