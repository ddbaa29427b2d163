from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple


# PATH
@dataclass
class PathsCfg:
    project_root: Optional[Path] = None
    data_dir: Optional[Path] = None

    # preprocess inputs
    band_dir: Optional[Path] = None    # directory with one GeoTIFF per band

    # classify inputs
    train_label_path: Optional[Path] = None
    valid_label_path: Optional[Path] = None
    submission_path: Optional[Path] = None  # CSV with X, Y, category

    # derived outputs
    derived_dir: Optional[Path] = None

    # final outputs
    preprocess_final_dir: Optional[Path] = None
    classify_final_dir: Optional[Path] = None


# INPUT DATA PARAMETERS
@dataclass
class DataCfg:
    band_codes: Tuple[str, ...] = ("B1", "B2", "B3", "B4", "B5", "B6", "B7")  # bands of the reflectance cube, in order
    band_pattern: str = "*_SR_B*.TIF"   # glob for single-band reflectance files
    exclude_bands: Tuple[str, ...] = ("B8",)  # panchromatic band is never used
    label_crs: str = "EPSG:27700"   # national grid of the label rasters and submission CSV
    image_crs: str = "EPSG:32630"   # UTM zone of the imagery
    scale: float = 2.75e-05     # digital number -> reflectance
    offset: float = -0.2
    image_nodata: Optional[int] = 0   # raw fill value when the band files declare none
    label_nodata: Optional[int] = 0   # used when the label raster declares no nodata


# CATEGORY LEGEND
@dataclass
class LegendCfg:
    codes: Tuple[int, ...] = (1, 2, 3, 4, 5)
    names: Tuple[str, ...] = ("Water", "Forest", "Grassland", "Cropland", "Built-up")
    colors: Tuple[Tuple[int, int, int], ...] = (
        (31, 120, 180),
        (51, 160, 44),
        (178, 223, 138),
        (255, 217, 47),
        (227, 26, 28),
    )
    colors_from_raster: bool = True  # prefer the training raster colormap when present


# CLASSIFY PARAMETERS
@dataclass
class ClassifyCfg:
    sample_size: int = 20000    # random points per label raster (training, validation)
    random_state: int = 1   # random seed for sampling and training

    # Random forest (library defaults unless changed)
    n_estimators: int = 100
    n_jobs: int = -1    # workers for training
    predict_n_jobs: int = 1     # workers for raster-wide prediction (keep at 1)
    predict_chunk: int = 500000     # pixels per prediction chunk

    # Prediction area: cube cropped to submission + validation points
    crop_to_points: bool = True
    crop_buffer: float = 300.0  # metres around the points

    # Output coding
    nodata_label: int = 0   # label value for nodata

    visualize_show: bool = False    # show figures interactively
    export_figures: bool = True     # save PNG figures


# COMBINED PIPELINE CONFIG
@dataclass
class PipelineCfg:
    paths: PathsCfg = field(default_factory=PathsCfg)
    data: DataCfg = field(default_factory=DataCfg)
    legend: LegendCfg = field(default_factory=LegendCfg)
    classify: ClassifyCfg = field(default_factory=ClassifyCfg)


def default_cfg():
    return PipelineCfg()
