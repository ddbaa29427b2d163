# build the 7-band reflectance cube (B1..B7, panchromatic excluded).

import numpy as np

from geolandcover.core.geo_io import find_band_files, load_band_stack, save_raster
from geolandcover.core.preprocess import rescale, out_of_range_fraction, make_valid_mask
from geolandcover.core.reproject import same_crs
from geolandcover.config.schema import default_cfg, PipelineCfg


def cube_file_name(band_codes):
    """File name of the reflectance cube for a band list."""
    return f"{'_'.join(band_codes)}_reflectance.tif"


def run_preprocess(cfg: PipelineCfg):
    # 1) find band files
    band_paths = find_band_files(
        cfg.paths.band_dir,
        pattern=cfg.data.band_pattern,
        exclude=cfg.data.exclude_bands,
    )
    for p in band_paths:
        print("Band file:", p.name)

    # 2) stack bands -> (B, H, W)
    meta_ref, cube_raw, band_names = load_band_stack(band_paths)
    if list(band_names) != list(cfg.data.band_codes):
        raise ValueError(f"Found bands {band_names}, expected {list(cfg.data.band_codes)}")
    print("Cube shape before rescale:", cube_raw.shape)

    if not same_crs(meta_ref["crs"], cfg.data.image_crs):
        print(f"Note: imagery CRS {meta_ref['crs']} differs from configured {cfg.data.image_crs}")

    # 3) digital numbers -> reflectance
    nodata = meta_ref.get("nodata")
    if nodata is None:
        nodata = cfg.data.image_nodata
    cube = rescale(cube_raw, cfg.data.scale, cfg.data.offset, nodata_value=nodata)
    mask = make_valid_mask(cube)

    print("Valid pixels %:", float(mask.sum()) / mask.size)
    print("Reflectance outside [0, 1] %:", out_of_range_fraction(cube))
    print("Per-band reflectance min:", np.nanmin(cube, axis=(1, 2)))
    print("Per-band reflectance max:", np.nanmax(cube, axis=(1, 2)))

    # 4) save reflectance cube as multi-band GeoTIFF
    cfg.paths.preprocess_final_dir.mkdir(parents=True, exist_ok=True)
    cube_out = cfg.paths.preprocess_final_dir / cube_file_name(band_names)
    save_raster(str(cube_out), meta_ref, cube, dtype="float32", nodata=np.nan)
    print("Saved reflectance cube to:", cube_out)

    return cube, band_names, meta_ref


if __name__ == "__main__":
    cfg = default_cfg()
    run_preprocess(cfg)
