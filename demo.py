from pathlib import Path

from geolandcover.config.schema import default_cfg
from geolandcover.pipelines.run_preprocess import run_preprocess
from geolandcover.pipelines.run_classify import run_classification


def main():
    cfg = default_cfg()


    # 1) define path config
    cfg.paths.project_root = Path(__file__).resolve().parent
    cfg.paths.data_dir = cfg.paths.project_root / "data"

    # preprocess paths
    cfg.paths.band_dir = cfg.paths.data_dir / "raw" / "Landsat"
    cfg.paths.derived_dir = cfg.paths.data_dir / "derived"
    cfg.paths.derived_dir.mkdir(parents=True, exist_ok=True)
    cfg.paths.preprocess_final_dir = cfg.paths.data_dir / "final" / "preprocess"
    cfg.paths.preprocess_final_dir.mkdir(parents=True, exist_ok=True)

    # classify paths
    cfg.paths.train_label_path = cfg.paths.data_dir / "raw" / "labels" / "train.tif"
    cfg.paths.valid_label_path = cfg.paths.data_dir / "raw" / "labels" / "validation.tif"
    cfg.paths.submission_path = cfg.paths.data_dir / "raw" / "submission.csv"
    cfg.paths.classify_final_dir = cfg.paths.data_dir / "final" / "classify"
    cfg.paths.classify_final_dir.mkdir(parents=True, exist_ok=True)


    # 2) define input data parameters
    cfg.data.band_pattern = "*_SR_B*.TIF"   # one file per band; B8 (panchromatic) is excluded
    cfg.data.label_crs = "EPSG:27700"   # labels and submission coordinates
    cfg.data.image_crs = "EPSG:32630"   # imagery


    # 3) define classify parameters
    cfg.classify.sample_size = 20000    # random points per label raster
    cfg.classify.random_state = 1   # random seed
    cfg.classify.n_jobs = -1    # all cores for training
    cfg.classify.predict_n_jobs = 1     # single worker for raster-wide prediction
    cfg.classify.visualize_show = False
    cfg.classify.export_figures = True


    # 4) run preprocess
    run_preprocess(cfg)


    # 5) run classification
    run_classification(cfg)


if __name__ == "__main__":
    main()
