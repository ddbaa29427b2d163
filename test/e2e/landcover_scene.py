# Synthetic Landsat-like scene for end-to-end tests.
#
# Imagery lives on a UTM 30N grid, labels and submission points on the
# British National Grid. Categories are vertical stripes in UTM easting, so
# labels and reflectance agree wherever the two grids overlap.
from pathlib import Path

import numpy as np
import pandas as pd
import rasterio
from pyproj import Transformer
from rasterio.transform import from_origin


UTM = "EPSG:32630"
BNG = "EPSG:27700"

E0 = 560000.0
N0 = 5880000.0
PIXEL = 30.0
SIZE = 120          # imagery is SIZE x SIZE pixels
STRIPE = 600.0      # metres per category stripe

# surface reflectance per category, bands B1..B7
SPECTRA = {
    1: [0.05, 0.04, 0.03, 0.02, 0.01, 0.01, 0.01],   # water
    2: [0.03, 0.04, 0.05, 0.04, 0.35, 0.18, 0.08],   # forest
    3: [0.12, 0.13, 0.15, 0.17, 0.22, 0.25, 0.23],   # built-up
}
COLORMAP = {1: (31, 120, 180, 255), 2: (51, 160, 44, 255), 3: (227, 26, 28, 255)}


def category_at(easting):
    return 1 + (np.floor((np.asarray(easting) - E0) / STRIPE).astype(int) % 3)


def _write(path, arr, crs, transform, nodata=None, colormap=None):
    arr = arr if arr.ndim == 3 else arr[np.newaxis]
    meta = dict(
        driver="GTiff", height=arr.shape[1], width=arr.shape[2], count=arr.shape[0],
        dtype=str(arr.dtype), crs=crs, transform=transform,
    )
    if nodata is not None:
        meta["nodata"] = nodata
    with rasterio.open(path, "w", **meta) as dst:
        dst.write(arr)
        if colormap:
            dst.write_colormap(1, colormap)
    return path


def write_bands(band_dir, seed=0):
    """Seven reflectance bands as raw digital numbers, plus a panchromatic band."""
    band_dir = Path(band_dir)
    band_dir.mkdir(parents=True, exist_ok=True)
    rng = np.random.default_rng(seed)

    eastings = E0 + (np.arange(SIZE) + 0.5) * PIXEL
    cats = np.tile(category_at(eastings), (SIZE, 1))
    transform = from_origin(E0, N0, PIXEL, PIXEL)

    for b in range(7):
        refl = np.vectorize(lambda c: SPECTRA[c][b])(cats) + rng.normal(0, 0.01, size=cats.shape)
        dn = np.round((refl + 0.2) / 2.75e-05).astype(np.uint16)
        dn[0, :3] = 0   # fill pixels
        _write(band_dir / f"LC09_L2SP_TEST_SR_B{b + 1}.TIF", dn, UTM, transform, nodata=0)

    pan = np.full((2 * SIZE, 2 * SIZE), 9000, dtype=np.uint16)
    _write(band_dir / "LC09_L2SP_TEST_SR_B8.TIF", pan, UTM, from_origin(E0, N0, PIXEL / 2, PIXEL / 2))
    return band_dir


def _bng_centre():
    to_bng = Transformer.from_crs(UTM, BNG, always_xy=True)
    cx, cy = to_bng.transform(E0 + SIZE * PIXEL / 2, N0 - SIZE * PIXEL / 2)
    return float(np.round(cx)), float(np.round(cy))


def write_labels(path, shift=0.0, size=60):
    """Label raster on the national grid, centred on the imagery (optionally shifted)."""
    cx, cy = _bng_centre()
    left = cx - size * PIXEL / 2 + shift
    top = cy + size * PIXEL / 2 - shift
    transform = from_origin(left, top, PIXEL, PIXEL)

    cols, rows = np.meshgrid(np.arange(size), np.arange(size))
    xs = left + (cols + 0.5) * PIXEL
    ys = top - (rows + 0.5) * PIXEL
    to_utm = Transformer.from_crs(BNG, UTM, always_xy=True)
    e, _ = to_utm.transform(xs, ys)

    labels = category_at(e).astype(np.uint8)
    labels[0, :] = 0    # nodata row
    return _write(path, labels, BNG, transform, nodata=0, colormap=COLORMAP)


def write_submission(path, n_inside=12, seed=0):
    """Submission CSV on the national grid; the last point lies far outside the imagery."""
    cx, cy = _bng_centre()
    rng = np.random.default_rng(seed)
    xs = list(cx + rng.uniform(-700, 700, size=n_inside)) + [cx + 100000.0]
    ys = list(cy + rng.uniform(-700, 700, size=n_inside)) + [cy]
    pd.DataFrame({"X": xs, "Y": ys, "category": [""] * len(xs)}).to_csv(path, index=False)
    return path


def expected_categories(xs, ys):
    to_utm = Transformer.from_crs(BNG, UTM, always_xy=True)
    e, _ = to_utm.transform(np.asarray(xs), np.asarray(ys))
    return category_at(e)
