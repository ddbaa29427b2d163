from __future__ import annotations

import numpy as np
import rasterio
from pyproj import CRS
from rasterio.warp import calculate_default_transform, reproject, Resampling


_RESAMPLING = {
    "nearest": Resampling.nearest,
    "bilinear": Resampling.bilinear,
    "cubic": Resampling.cubic,
}


def same_crs(crs_a, crs_b):
    """
    Compare two CRS definitions (EPSG string, rasterio CRS or pyproj CRS).
    """
    if crs_a is None or crs_b is None:
        return False
    return CRS.from_user_input(crs_a) == CRS.from_user_input(crs_b)


def reproject_points(points, dst_crs):
    """
    Re-express a point layer in another coordinate reference system.

    Parameters
    ----------
    points : geopandas.GeoDataFrame
        Points with a defined CRS.
    dst_crs : str or CRS
        Target CRS.

    Returns
    -------
    geopandas.GeoDataFrame
        Same rows, same order, same attributes, new coordinates.
    """
    if points.crs is None:
        raise ValueError("Point layer has no CRS; cannot reproject.")
    return points.to_crs(CRS.from_user_input(dst_crs))


def ensure_common_crs(points, ref_crs):
    """
    Bring a point layer into the CRS of a reference raster.

    Called wherever points meet a raster, so a silent CRS mismatch can
    never reach a pixel lookup.
    """
    if ref_crs is None:
        raise ValueError("Reference raster has no CRS.")
    if same_crs(points.crs, ref_crs):
        return points
    return reproject_points(points, ref_crs)


def reproject_raster(
    meta,
    array,
    dst_crs,
    resampling="nearest",
):
    """
    Warp a raster onto a new CRS.

    Parameters
    ----------
    meta : dict
        Source metadata (crs, transform, height, width, nodata).
    array : ndarray
        Source data, (H, W) or (B, H, W).
    dst_crs : str or CRS
        Target CRS.
    resampling : str, optional
        "nearest" (use for category codes), "bilinear" or "cubic".

    Returns
    -------
    meta : dict
        Metadata of the warped grid.
    arr : ndarray
        Warped data, same number of dimensions as the input.
    """
    if meta.get("crs") is None:
        raise ValueError("Raster has no CRS; cannot reproject.")

    rs = _RESAMPLING.get(resampling, Resampling.nearest)
    dst_crs = rasterio.crs.CRS.from_user_input(dst_crs)

    src_arr = array if array.ndim == 3 else array[np.newaxis]
    count, height, width = src_arr.shape
    left, bottom, right, top = rasterio.transform.array_bounds(height, width, meta["transform"])

    dst_transform, dst_w, dst_h = calculate_default_transform(
        meta["crs"], dst_crs, width, height, left, bottom, right, top
    )

    nodata = meta.get("nodata")
    if nodata is None and np.issubdtype(src_arr.dtype, np.floating):
        nodata = np.nan
    fill = 0 if nodata is None else nodata

    dst = np.full((count, dst_h, dst_w), fill, dtype=src_arr.dtype)
    reproject(
        source=src_arr,
        destination=dst,
        src_transform=meta["transform"],
        src_crs=meta["crs"],
        src_nodata=nodata,
        dst_transform=dst_transform,
        dst_crs=dst_crs,
        dst_nodata=nodata,
        resampling=rs,
    )

    out_meta = meta.copy()
    out_meta.update(
        crs=dst_crs,
        transform=dst_transform,
        height=dst_h,
        width=dst_w,
        count=count,
    )
    if nodata is not None:
        out_meta["nodata"] = nodata

    return out_meta, (dst if array.ndim == 3 else dst[0])


def align_raster_to_meta(
    src_path,
    ref_meta,
    band=1,
    resampling="nearest",
):
    """
    Reproject and resample a raster band to exactly match a reference grid.

    Parameters
    ----------
    src_path : str
        Path to source raster.
    ref_meta : dict
        Raster metadata defining target grid (transform, crs, height, width).
    band : int, optional
        Band index to read, by default 1.
    resampling : str, optional
        Resampling method ("nearest", "bilinear", "cubic"), by default "nearest".

    Returns
    -------
    ndarray
        Aligned raster array with shape (H, W); cells not covered by the
        source are NaN.
    """
    rs = _RESAMPLING.get(resampling, Resampling.nearest)

    dst_h, dst_w = ref_meta["height"], ref_meta["width"]
    dst = np.full((dst_h, dst_w), np.nan, dtype="float32")

    with rasterio.open(src_path) as src:
        if src.crs is None:
            raise ValueError(f"Raster has no CRS: {src_path}")
        src_arr = src.read(band).astype("float32")
        reproject(
            source=src_arr,
            destination=dst,
            src_transform=src.transform,
            src_crs=src.crs,
            src_nodata=src.nodata,
            dst_transform=ref_meta["transform"],
            dst_crs=ref_meta["crs"],
            dst_nodata=np.nan,
            resampling=rs,
        )
    return dst
