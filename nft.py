import pathlib
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Sequence, Tuple

from PIL import Image
from progressbar import progressbar

from cache import ComboCache, fingerprint
from combos import Combo, Layer, add_required, get_all_combos, get_required_combos
from config import (
    ASSETS_PATH,
    BUILD_PATH,
    HEIGHT,
    LAYERS,
    MAX_WORKERS,
    METADATA_FILE,
    OUTPUT_FORMAT,
    REQUIRED,
    WIDTH,
)
from metadata import generate_rarity_stats, update_traits
from quota import QuotaTracker

ImageTable = Dict[Tuple[str, str], Image.Image]
Draw = Tuple[Image.Image, int, int, int, int]


class FatalConfigError(Exception):
    """The layer catalog cannot be rendered. Aborts the whole run."""


class RenderAttemptError(Exception):
    """A single combo failed to render. The pass carries on without it."""


def parse_config(layers: Sequence[Layer], required: Sequence[Layer]) -> None:
    """Validate the layer catalog before generating anything."""
    seen = set()
    for group in (layers, required):
        previous = None
        for layer in group:
            layer_id = layer["id"]
            if layer_id in seen:
                raise ValueError(f"Duplicate layer id: {layer_id}")
            seen.add(layer_id)

            if previous is not None and layer_id <= previous:
                raise ValueError(
                    f"Layers must be ordered by ascending id, got {layer_id} after {previous}"
                )
            previous = layer_id

            if not 0 < layer["rarity"] <= 1:
                raise ValueError(
                    f"Invalid rarity for layer {layer['name']}: {layer['rarity']}"
                )
            if not layer["elements"]:
                raise ValueError(f"Layer {layer['name']} has no elements")
            if len(layer["dimensions"]) != 4:
                raise ValueError(
                    f"Layer {layer['name']} dimensions must be [x, y, w, h], "
                    f"got {layer['dimensions']}"
                )


def initialize_combos(
    layers: Sequence[Layer], required: Sequence[Layer], cache: ComboCache
) -> Tuple[List[List[Combo]], List[Layer]]:
    """Build the groups of combos still to render.

    Returns:
        The combo groups, and the catalog of optional then required layers
    """
    combos = get_all_combos(layers)
    req_combos = get_required_combos(required)

    groups = add_required(combos, req_combos, cache.contains)
    catalog = list(layers) + list(required)
    return groups, catalog


def load_images(catalog: Sequence[Layer], assets_path: pathlib.Path) -> ImageTable:
    """Decode every element image of the catalog, keyed by (layer name, element)."""
    images = {}
    for layer in catalog:
        for element in layer["elements"]:
            path = assets_path / layer["name"] / element
            try:
                img = Image.open(path)
                img.load()
            except OSError as exc:
                raise FatalConfigError(f"Failed to load: {path}") from exc
            images[(layer["name"], element)] = img
    return images


def generate_single_image(draws: Sequence[Draw], width: int, height: int) -> Image.Image:
    """Stack images on a transparent canvas, later draws on top."""
    canvas = Image.new("RGBA", (width, height), (0, 0, 0, 0))

    for img, x, y, w, h in draws:
        layer = img.convert("RGBA")
        if layer.size != (w, h):
            layer = layer.resize((w, h))
        canvas.paste(layer, (x, y), layer)

    return canvas


def save_cache(cache: ComboCache, path: pathlib.Path) -> bool:
    """Persist the cache. A failure is reported, not raised."""
    try:
        cache.save(path)
    except OSError as exc:
        print(f"Failed to update metadata file! ({exc})")
        return False
    return True


class RenderScheduler:
    """Decides which combos get rendered and renders them concurrently.

    Quota checks and cache updates are serialized, compositing and writing
    run in parallel on a thread pool.
    """

    def __init__(
        self,
        catalog: Sequence[Layer],
        images: ImageTable,
        cache: ComboCache,
        quotas: QuotaTracker,
        build_path: pathlib.Path,
        width: int = WIDTH,
        height: int = HEIGHT,
        output_format: str = OUTPUT_FORMAT,
        max_workers: int = MAX_WORKERS,
    ):
        self.layers = {layer["id"]: layer for layer in catalog}
        self.images = images
        self.cache = cache
        self.quotas = quotas
        self.build_path = build_path
        self.width = width
        self.height = height
        self.output_format = output_format
        self.max_workers = max_workers
        self.rendered: List[Tuple[int, Combo]] = []
        self._lock = threading.Lock()

    def _draw(self, assignment) -> Draw:
        layer = self.layers[assignment.id]
        img = self.images.get((layer["name"], assignment.element))
        if img is None:
            raise FatalConfigError(
                f"Image was not loaded for {layer['name']}/{assignment.element}"
            )
        x, y, w, h = layer["dimensions"]
        return img, x, y, w, h

    def render_combo(self, combo: Combo, combo_num: int) -> bool:
        """Render one combo as `<combo_num>.<ext>` unless cached or over quota."""
        fp = fingerprint(combo)
        if self.cache.exists(fp):
            return False

        combo_rarity = self.quotas.reserve(combo)
        if combo_rarity is None:
            return False

        try:
            draws = [self._draw(assignment) for assignment in combo]
            image = generate_single_image(draws, self.width, self.height)
            output = self.build_path / f"{combo_num}.{self.output_format}"
            if output.exists():
                print(f"Warning: overwriting {output}, an earlier combo used #{combo_num}")
            try:
                image.save(output)
            except OSError as exc:
                raise RenderAttemptError(f"Failed to save {output}: {exc}") from exc
        except Exception:
            self.quotas.release(combo)
            raise

        with self._lock:
            self.cache.add(fp, combo_rarity)
            self.rendered.append((combo_num, combo))
        return True

    def render_combos(self, groups: Sequence[Sequence[Combo]]) -> int:
        """Attempt every combo. Numbering starts after the cached combos.

        Returns:
            Number of combos rendered by this pass
        """
        combo_num = len(self.cache) + 1
        rendered = 0

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {}
            for group in groups:
                for combo in group:
                    future = executor.submit(self.render_combo, combo, combo_num)
                    futures[future] = combo_num
                    combo_num += 1

            if not futures:
                return 0

            for future in progressbar(as_completed(futures), max_value=len(futures)):
                try:
                    rendered += future.result()
                except RenderAttemptError as exc:
                    print(f"Skipped combo #{futures[future]}: {exc}")
                except FatalConfigError:
                    for pending in futures:
                        pending.cancel()
                    raise

        return rendered


def run(
    layers: Sequence[Layer] = LAYERS,
    required: Sequence[Layer] = REQUIRED,
    width: int = WIDTH,
    height: int = HEIGHT,
    assets_path: pathlib.Path = ASSETS_PATH,
    build_path: pathlib.Path = BUILD_PATH,
    max_workers: int = MAX_WORKERS,
) -> int:
    """Render every combo not rendered by a previous run.

    Rarity quotas only hold within one run: counts start at zero and the
    ceiling is recomputed from the combos left, so re-runs can add more
    constrained renders on top of earlier ones.

    Returns:
        Number of combos rendered by this run
    """
    parse_config(layers, required)
    build_path.mkdir(parents=True, exist_ok=True)

    cache_path = build_path / METADATA_FILE
    cache = ComboCache.load(cache_path)
    processed_count = len(cache)

    groups, catalog = initialize_combos(layers, required, cache)
    max_combos = len(groups) * len(required)
    print(f"Successfully found {max_combos} possible combinations!")

    if not groups:
        print("There are no unique combinations to process! Ending Program...")
        return 0

    images = load_images(catalog, assets_path)

    start = time.perf_counter()
    quotas = QuotaTracker(max_combos)
    if processed_count:
        print(
            f"Resuming after {processed_count} cached combos, "
            "rarity quotas apply to this run only"
        )
    scheduler = RenderScheduler(
        catalog,
        images,
        cache,
        quotas,
        build_path,
        width=width,
        height=height,
        max_workers=max_workers,
    )
    scheduler.render_combos(groups)

    save_cache(cache, cache_path)
    traits_df = update_traits(build_path, sorted(scheduler.rendered), catalog)

    rendered = len(cache) - processed_count
    print(f"Successfully processed {rendered} combos!")
    print(f"Time Taken: {(time.perf_counter() - start) * 1000:.0f} ms")

    if traits_df is not None:
        print("\n=== Rarity Statistics ===")
        generate_rarity_stats(traits_df, catalog, quotas)
    return rendered


def main() -> None:
    """Main combo rendering workflow."""
    print("Checking layers...")
    try:
        run()
    except FatalConfigError as exc:
        print(exc)
        print("Failed to render combos! Ending Program...")
        raise SystemExit(1)

    print("✅ Task complete!")
    print("\n📝 Next step: Run 'python metadata.py' to generate JSON metadata files")


if __name__ == "__main__":
    main()
