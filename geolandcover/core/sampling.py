from __future__ import annotations

import geopandas as gpd
import numpy as np
from rasterio.transform import xy

from geolandcover.core.preprocess import make_valid_mask


def sample_random_points(
    label_arr,
    meta,
    size,
    random_state,
    nodata = None,
    category_col = "category",
):
    """
    Draw random labelled pixel centres from a categorical raster.

    Every valid pixel has the same chance of being picked, so class
    proportions of the sample follow those of the raster (no stratification).

    Parameters
    ----------
    label_arr : ndarray
        Category codes with shape (H, W).
    meta : dict
        Raster metadata (crs, transform, nodata).
    size : int
        Number of points wanted. Capped at the number of valid pixels.
    random_state : int or numpy.random.Generator
        Seed (or generator) for the draw.
    nodata : int, optional
        Value to skip; falls back to meta["nodata"].
    category_col : str, optional
        Name of the category column.

    Returns
    -------
    geopandas.GeoDataFrame
        Points at pixel centres in the raster CRS with a category column.
    """
    if label_arr.ndim != 2:
        raise ValueError(f"label_arr must be (H,W), got {label_arr.shape}")
    if size < 0:
        raise ValueError("size must be >= 0.")

    if nodata is None:
        nodata = meta.get("nodata")

    mask = make_valid_mask(label_arr, nodata_value=nodata)
    valid_idx = np.flatnonzero(mask)

    rng = np.random.default_rng(random_state)
    n = int(min(size, valid_idx.size))
    picked = rng.choice(valid_idx, size=n, replace=False)
    if n == 0:
        return gpd.GeoDataFrame(
            {category_col: label_arr.reshape(-1)[:0]},
            geometry=gpd.GeoSeries([], crs=meta["crs"]),
            crs=meta["crs"],
        )

    rows, cols = np.unravel_index(picked, label_arr.shape)
    xs, ys = xy(meta["transform"], rows, cols, offset="center")

    return gpd.GeoDataFrame(
        {category_col: label_arr[rows, cols]},
        geometry=gpd.points_from_xy(np.asarray(xs, dtype=float), np.asarray(ys, dtype=float)),
        crs=meta["crs"],
    )
