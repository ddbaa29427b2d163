# preprocess.py
# Basic preprocessing utilities for raster data.

import numpy as np


# Landsat Collection 2 Level-2 surface reflectance
REFLECTANCE_SCALE = 2.75e-05
REFLECTANCE_OFFSET = -0.2


def to_float32(arr):
    """
    Convert input array to float32.
    """
    return np.asarray(arr, dtype="float32")


def stack_bands(band_list):
    """
    Stack a list of 2D arrays (H, W) into a 3D cube (B, H, W).

    All bands must have the same height and width.
    """
    bands = [np.asarray(b) for b in band_list]
    return np.stack(bands, axis=0)


def rescale(arr, scale, offset, nodata_value=None):
    """
    Affine rescale: value * scale + offset, applied to every band.

    - Band order and shape are preserved.
    - The result is not clipped; values outside the physical range stay as they are.
    - Pixels equal to nodata_value (if given) become NaN.
    """
    raw = np.asarray(arr)
    out = to_float32(raw) * np.float32(scale) + np.float32(offset)
    if nodata_value is not None:
        out[raw == nodata_value] = np.nan
    return out


def rescale_reflectance(arr, nodata_value=None):
    """
    Convert raw digital numbers to surface reflectance.
    """
    return rescale(arr, REFLECTANCE_SCALE, REFLECTANCE_OFFSET, nodata_value=nodata_value)


def out_of_range_fraction(arr, low=0.0, high=1.0):
    """
    Fraction of finite values outside [low, high].

    Reflectance slightly below 0 or above 1 is expected noise, so this is
    only reported, never enforced.
    """
    arr = np.asarray(arr)
    finite = np.isfinite(arr)
    n = int(finite.sum())
    if n == 0:
        return 0.0
    vals = arr[finite]
    return float(np.count_nonzero((vals < low) | (vals > high))) / n


def make_valid_mask(arr, nodata_value=None):
    """
    Build a boolean mask of valid pixels.

    - For (H, W): True where pixel is not nodata (and not NaN).
    - For (1, H, W): same as single band.
    - For (B, H, W): True where ALL bands are valid.
      (useful when stacking multiple bands).
    nodata_value=None only masks NaN.
    """
    arr = np.asarray(arr)

    # Shape (1, H, W) -> treat as single band
    if arr.ndim == 3 and arr.shape[0] == 1:
        arr = arr[0]

    if np.issubdtype(arr.dtype, np.floating):
        valid = ~np.isnan(arr)
    else:
        valid = np.ones_like(arr, dtype=bool)

    if nodata_value is not None:
        valid &= arr != nodata_value

    # Single band (H, W)
    if arr.ndim == 2:
        return valid

    # Collapse along band axis: pixel is valid if all bands are valid
    mask = np.all(valid, axis=0)   # (H, W)
    return mask
