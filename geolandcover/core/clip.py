import warnings

import rasterio
from rasterio.mask import mask
from shapely.geometry import box

from geolandcover.core.reproject import ensure_common_crs


def crop_raster_to_points(
    raster_path,
    points_list,
    buffer=0.0,
    out_path=None,
):
    """
    Crop a raster to the bounding box of one or more point layers.
    The box is built in the raster CRS and grown by `buffer` map units.
    Returns cropped metadata and array. When the box misses the raster
    entirely, the whole raster is returned with a warning; points outside
    it are flagged later instead of failing here.
    """
    if not points_list:
        raise ValueError("No point layers given for cropping.")

    with rasterio.open(raster_path) as src:

        # Reproject points to raster CRS if needed
        bounds = [ensure_common_crs(p, src.crs).total_bounds for p in points_list if len(p)]
        if not bounds:
            raise ValueError("Point layers are empty; nothing to crop to.")

        minx = min(b[0] for b in bounds) - buffer
        miny = min(b[1] for b in bounds) - buffer
        maxx = max(b[2] for b in bounds) + buffer
        maxy = max(b[3] for b in bounds) + buffer

        crop_box = box(minx, miny, maxx, maxy)
        if not crop_box.intersects(box(*src.bounds)):
            warnings.warn(
                "Points do not overlap the raster; using the full extent.",
                UserWarning,
            )
            out_image, out_transform = src.read(), src.transform
        else:
            # Perform crop to the box
            out_image, out_transform = mask(src, [crop_box.__geo_interface__], crop=True, all_touched=True)

        # Update metadata for the cropped raster
        out_meta = src.meta.copy()
        out_meta.update({
            "height": out_image.shape[1],
            "width": out_image.shape[2],
            "transform": out_transform,
            "count": out_image.shape[0]
        })

    # Optionally save the cropped raster to disk
    if out_path is not None:
        with rasterio.open(out_path, "w", **out_meta) as dst:
            dst.write(out_image)

    return out_meta, out_image
