from __future__ import annotations

import warnings
from pathlib import Path

import geopandas as gpd
import pandas as pd

from geolandcover.core.feature import extract_at_points
from geolandcover.core.reproject import ensure_common_crs


def load_submission_points(
    csv_path,
    crs,
    x_col = "X",
    y_col = "Y",
):
    """
    Read submission coordinates into a point layer.

    Parameters
    ----------
    csv_path : str or pathlib.Path
        Delimited text with X, Y (and usually an empty category column).
    crs : str or CRS
        CRS of the coordinates.

    Returns
    -------
    geopandas.GeoDataFrame
        All input columns, row order kept, point geometry added.
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Submission file not found: {csv_path}")

    df = pd.read_csv(csv_path)
    for col in (x_col, y_col):
        if col not in df.columns:
            raise ValueError(f"Column '{col}' missing in {csv_path.name}: {list(df.columns)}")

    return gpd.GeoDataFrame(
        df,
        geometry=gpd.points_from_xy(df[x_col], df[y_col]),
        crs=crs,
    )


def predict_submission(
    points,
    pred_meta,
    label_map,
    category_col = "category",
):
    """
    Look up predicted categories at submission points.

    Points are brought into the CRS of the prediction raster first. A
    point outside the raster or on a nodata pixel gets a missing category
    (never a default class) and is reported with a warning.

    Returns
    -------
    pandas.DataFrame
        Input rows in input order (without geometry), category filled as
        a nullable integer column.
    """
    pts = ensure_common_crs(points, pred_meta["crs"])
    codes = extract_at_points(pts, pred_meta, label_map, [category_col])[category_col]

    out = pd.DataFrame(points.drop(columns=points.geometry.name))
    out[category_col] = codes.round().astype("Int64")

    n_missing = int(out[category_col].isna().sum())
    if n_missing:
        warnings.warn(
            f"{n_missing} of {len(out)} submission points have no prediction "
            "(outside the prediction raster or on nodata); category left empty.",
            UserWarning,
        )
    return out


def write_submission(table, out_path):
    """
    Write the submission table as CSV with a header row.

    Missing categories are written as empty fields.
    """
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(out_path, index=False)
    return out_path
