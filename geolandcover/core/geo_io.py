import re
from pathlib import Path

import numpy as np
import rasterio

from geolandcover.core.preprocess import stack_bands


_BAND_RE = re.compile(r"B(\d+)", re.IGNORECASE)


def load_raster(path, bands=None):
    """Load raster and return metadata + array."""
    with rasterio.open(path) as src:
        meta = src.meta.copy()

        if bands is None:
            arr = src.read()          # all bands
        elif isinstance(bands, int):
            arr = src.read(bands)     # one band → (H, W)
        else:
            arr = src.read(bands)     # list of bands → (B, H, W)

    return meta, arr


def save_raster(path, meta, array, dtype=None, nodata=None, compress="deflate", colormap=None):
    """
    Save array as GeoTIFF.

    dtype/nodata are optional but recommended.
    colormap (code -> RGBA) is written to band 1, for categorical rasters.
    """
    meta = meta.copy()

    # set band count
    if array.ndim == 2:
        meta["count"] = 1
    else:
        meta["count"] = array.shape[0]

    # set dtype
    if dtype is None:
        dtype = array.dtype
    meta["dtype"] = str(np.dtype(dtype))

    # set nodata
    if nodata is not None:
        meta["nodata"] = nodata

    # optional compression (keeps files smaller)
    if compress is not None:
        meta["compress"] = compress
    meta.setdefault("driver", "GTiff")

    with rasterio.open(path, "w", **meta) as dst:
        if array.ndim == 2:
            dst.write(array.astype(dtype, copy=False), 1)
        else:
            dst.write(array.astype(dtype, copy=False))
        if colormap:
            dst.write_colormap(1, colormap)


def band_name_from_path(path):
    """
    Band identifier from a band file name, e.g. "LC09_..._SR_B4.TIF" -> "B4".
    """
    matches = _BAND_RE.findall(Path(path).stem)
    if not matches:
        raise ValueError(f"Cannot find a band number in file name: {Path(path).name}")
    return f"B{int(matches[-1])}"


def find_band_files(raster_dir, pattern="*_SR_B*.TIF", exclude=("B8",)):
    """
    Find single-band GeoTIFFs in a directory, sorted by band number.

    Parameters
    ----------
    raster_dir : pathlib.Path
        Directory holding one raster file per band.
    pattern : str, optional
        Glob pattern for band files.
    exclude : tuple of str, optional
        Band identifiers to leave out (the panchromatic band by default).

    Returns
    -------
    list of pathlib.Path
        Band files in band order.
    """
    raster_dir = Path(raster_dir)
    excluded = {e.upper() for e in exclude}
    matches = [
        p for p in raster_dir.glob(pattern)
        if band_name_from_path(p).upper() not in excluded
    ]

    if not matches:
        raise FileNotFoundError(f"No band files matching '{pattern}' in {raster_dir}")

    return sorted(matches, key=lambda p: int(band_name_from_path(p)[1:]))


def load_band_stack(paths):
    """
    Read single-band rasters and stack them in the listed order.

    Parameters
    ----------
    paths : list of str or pathlib.Path
        One raster file per band.

    Returns
    -------
    meta : dict
        Metadata of the first file, with count set to the number of bands.
    cube : ndarray
        Stacked data with shape (B, H, W).
    band_names : list of str
        Band identifiers in stack order.
    """
    if not paths:
        raise ValueError("No band files given.")

    meta_ref = None
    bands = []
    for p in paths:
        with rasterio.open(p) as src:
            if meta_ref is None:
                meta_ref = src.meta.copy()
            else:
                if (src.height, src.width) != (meta_ref["height"], meta_ref["width"]):
                    raise ValueError(
                        f"Dimension mismatch for {Path(p).name}: "
                        f"{(src.height, src.width)} != {(meta_ref['height'], meta_ref['width'])}"
                    )
                if src.crs != meta_ref["crs"]:
                    raise ValueError(f"CRS mismatch for {Path(p).name}: {src.crs} != {meta_ref['crs']}")
                if src.transform != meta_ref["transform"]:
                    raise ValueError(f"Pixel grid mismatch for {Path(p).name}")
            bands.append(src.read(1))

    cube = stack_bands(bands)
    meta_ref.update(count=cube.shape[0], dtype=str(cube.dtype))
    band_names = [band_name_from_path(p) for p in paths]

    return meta_ref, cube, band_names


def load_label_raster(path):
    """
    Load a single-band categorical raster.

    Returns
    -------
    meta : dict
        Raster metadata.
    arr : ndarray
        Category codes with shape (H, W).
    colormap : dict or None
        Code -> RGBA colormap stored in the file, None if absent.
    """
    with rasterio.open(path) as src:
        meta = src.meta.copy()
        arr = src.read(1)
        try:
            colormap = src.colormap(1)
        except ValueError:
            # rasterio raises ValueError when the band has no colormap
            colormap = None

    return meta, arr, colormap
