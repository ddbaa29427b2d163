from __future__ import annotations
import numpy as np
import pandas as pd
from rasterio.transform import rowcol

from geolandcover.core.reproject import ensure_common_crs, same_crs


def extract_pixel_features(
    cube,
    mask = None
):
    """
    Extract per-pixel feature vectors from a raster cube.

    Parameters
    ----------
    cube : ndarray
        Raster data with shape (B, H, W).
    mask : ndarray of bool, optional
        Valid-pixel mask with shape (H, W). True means valid.

    Returns
    -------
    features : ndarray
        Extracted features with shape (N, B).
    idx : ndarray
        Linear indices of selected pixels.
    (h, w) : tuple
        Original shape.
    """
    if cube.ndim != 3:
        raise ValueError(f"cube must be (B,H,W), got {cube.shape}")

    b, h, w = cube.shape

    if mask is None:
        mask = np.ones((h, w), dtype=bool)
    else:
        if mask.shape != (h, w):
            raise ValueError(f"mask shape {mask.shape} != {(h,w)}")
        mask = mask.astype(bool, copy=False)

    cube_flat = cube.reshape(b, -1).T   # (H*W, B)
    mask_flat = mask.reshape(-1)        # (H*W,)

    idx = np.where(mask_flat)[0]
    features = cube_flat[idx]           # (N,B)

    return features, idx, (h, w)


def extract_at_points(
    points,
    meta,
    array,
    names,
):
    """
    Read raster values at point locations (nearest pixel, no interpolation).

    Parameters
    ----------
    points : geopandas.GeoDataFrame
        Points in the same CRS as the raster.
    meta : dict
        Raster metadata (crs, transform, nodata).
    array : ndarray
        Raster data, (H, W) or (B, H, W).
    names : list of str
        One column name per band.

    Returns
    -------
    pandas.DataFrame
        One row per point (same index and order), one column per band.
        Points outside the raster or on nodata pixels get NaN.
    """
    if not same_crs(points.crs, meta.get("crs")):
        raise ValueError(f"CRS mismatch between points ({points.crs}) and raster ({meta.get('crs')})")

    cube = array if array.ndim == 3 else array[np.newaxis]
    b, h, w = cube.shape
    if len(names) != b:
        raise ValueError(f"{len(names)} names given for {b} bands.")

    out = np.full((len(points), b), np.nan, dtype="float64")
    if len(points) == 0:
        return pd.DataFrame(out, columns=list(names), index=points.index)

    rows, cols = rowcol(meta["transform"], points.geometry.x.to_numpy(), points.geometry.y.to_numpy())
    rows = np.asarray(rows, dtype=np.int64)
    cols = np.asarray(cols, dtype=np.int64)
    inside = (rows >= 0) & (rows < h) & (cols >= 0) & (cols < w)

    values = cube[:, rows[inside], cols[inside]].T.astype("float64")   # (n_inside, B)
    nodata = meta.get("nodata")
    if nodata is not None and not np.isnan(nodata):
        values[values == nodata] = np.nan
    out[inside] = values

    return pd.DataFrame(out, columns=list(names), index=points.index)


def build_sample_table(
    points,
    cube_meta,
    cube,
    band_names,
    category_col = "category",
):
    """
    Join point categories with band values read from the image cube.

    The points are brought into the cube CRS first. Rows keep the input
    order; missing band values are left as NaN for the caller to handle.

    Returns
    -------
    pandas.DataFrame
        Band columns (in band order) followed by the category column.
    """
    pts = ensure_common_crs(points, cube_meta["crs"])
    table = extract_at_points(pts, cube_meta, cube, band_names)
    if category_col in points.columns:
        table[category_col] = points[category_col].to_numpy()
    return table.reset_index(drop=True)


def drop_incomplete_rows(table, columns=None):
    """
    Remove rows with any missing value in the given columns.

    Returns
    -------
    table : pandas.DataFrame
        Complete rows only.
    n_dropped : int
        Number of rows removed.
    """
    complete = table.dropna(subset=columns).reset_index(drop=True)
    return complete, len(table) - len(complete)
