"""
Classify pipeline: random sampling + feature extraction + random forest + evaluation + submission

Inputs:
  - B1_B2_B3_B4_B5_B6_B7_reflectance.tif   (7-band reflectance cube, imagery CRS)
  - training / validation label rasters    (category codes, national grid)
  - submission CSV                         (X, Y, category; national grid)

Outputs:
  - train_samples.csv, valid_samples.csv   (sample tables)
  - validation_*.csv, map_*.csv            (confusion matrix and metrics)
  - feature_importance.csv
  - prediction.tif                         (category codes with colormap)
  - submission.csv
"""

import warnings

import numpy as np

from geolandcover.core.geo_io import load_raster, load_label_raster, save_raster
from geolandcover.core.clip import crop_raster_to_points
from geolandcover.core.legend import legend_from_cfg
from geolandcover.core.sampling import sample_random_points
from geolandcover.core.feature import build_sample_table, drop_incomplete_rows
from geolandcover.core.supervised import (
    train_classifier,
    predict_table,
    predict_raster,
    check_category_domain,
)
from geolandcover.core.evaluate import evaluate, save_report
from geolandcover.core.reproject import align_raster_to_meta, same_crs
from geolandcover.core.submission import load_submission_points, predict_submission, write_submission
from geolandcover.core.postprocess import (
    visualize,
    compare_and_save,
    plot_confusion_matrix,
    plot_feature_importance,
)
from geolandcover.pipelines.run_preprocess import cube_file_name
from geolandcover.config.schema import default_cfg, PipelineCfg


def find_cube(preprocessed_dir, band_codes):
    """
    Locate the reflectance cube for a band list.

    Parameters
    ----------
    preprocessed_dir : pathlib.Path
        Directory containing preprocessed raster outputs.
    band_codes : list of str
        Band identifiers of the cube (e.g. ["B1", ..., "B7"]).

    Returns
    -------
    pathlib.Path
        Path to the reflectance cube.
    """
    name = cube_file_name(band_codes)
    candidates = sorted(preprocessed_dir.glob(f"*{name}"))

    if len(candidates) != 1:
        raise FileNotFoundError(
            f"Expected exactly 1 cube '*{name}' in {preprocessed_dir}, "
            f"got {len(candidates)}: " + ", ".join(p.name for p in candidates)
        )
    return candidates[0]


def load_labels(path, label_nodata, label_crs):
    """
    Load a label raster; fill in nodata from config when the file has none.
    """
    meta, arr, colormap = load_label_raster(str(path))
    if meta.get("nodata") is None and label_nodata is not None:
        meta["nodata"] = label_nodata
    if meta.get("crs") is None:
        raise ValueError(f"Label raster has no CRS: {path}")
    if not same_crs(meta["crs"], label_crs):
        print(f"Note: {path.name} CRS {meta['crs']} differs from configured {label_crs}")
    return meta, arr, colormap


def sample_table(label_path, cube_meta, cube, band_codes, cfg: PipelineCfg, tag, rng=None):
    """
    Random points from a label raster joined with reflectance values.

    rng is shared between calls so each label raster gets its own draw;
    without it the configured seed starts a fresh stream.
    """
    meta, arr, colormap = load_labels(label_path, cfg.data.label_nodata, cfg.data.label_crs)
    points = sample_random_points(
        arr,
        meta,
        size=cfg.classify.sample_size,
        random_state=cfg.classify.random_state if rng is None else rng,
    )
    print(f"[{tag}] sampled points:", len(points))
    print(f"[{tag}] category counts:", points["category"].value_counts().sort_index().to_dict())

    table = build_sample_table(points, cube_meta, cube, band_codes)
    table, n_dropped = drop_incomplete_rows(table)
    if n_dropped:
        print(f"[{tag}] dropped {n_dropped} points without reflectance values")
    print(f"[{tag}] table shape:", table.shape)

    return table, points, colormap


def run_classification(cfg: PipelineCfg):
    output_dir = cfg.paths.classify_final_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    derived_dir = cfg.paths.derived_dir
    derived_dir.mkdir(parents=True, exist_ok=True)
    band_codes = list(cfg.data.band_codes)

    # 1) load reflectance cube
    cube_path = find_cube(cfg.paths.preprocess_final_dir, band_codes)
    meta_cube, cube = load_raster(str(cube_path))  # (B,H,W)
    if cube.ndim != 3 or cube.shape[0] != len(band_codes):
        raise ValueError(f"Expected {len(band_codes)}-band cube (B,H,W), got shape {cube.shape}")
    print("Cube shape:", cube.shape)
    print("Cube CRS:", meta_cube["crs"])

    # 2) sample training and validation tables from one random stream
    rng = np.random.default_rng(cfg.classify.random_state)
    train_table, _, colormap = sample_table(cfg.paths.train_label_path, meta_cube, cube, band_codes, cfg, "train", rng=rng)
    valid_table, valid_points, _ = sample_table(cfg.paths.valid_label_path, meta_cube, cube, band_codes, cfg, "valid", rng=rng)
    train_table.to_csv(derived_dir / "train_samples.csv", index=False)
    valid_table.to_csv(derived_dir / "valid_samples.csv", index=False)

    legend = legend_from_cfg(cfg.legend)
    if cfg.legend.colors_from_raster:
        legend = legend.with_colormap(colormap)

    unseen = check_category_domain(train_table, valid_table)
    if unseen:
        print("Warning: validation categories missing from training:", unseen)

    # 3) train random forest
    fitted = train_classifier(
        train_table,
        n_estimators=cfg.classify.n_estimators,
        random_state=cfg.classify.random_state,
        n_jobs=cfg.classify.n_jobs,
        legend=legend,
    )
    importance = fitted.feature_importance()
    print("Classes:", fitted.classes)
    print("Feature importance:", importance.round(4).to_dict())
    importance.to_csv(output_dir / "feature_importance.csv", header=True)

    # 4) evaluate on validation samples
    labels = sorted(set(legend.codes) | set(fitted.classes) | set(valid_table["category"].astype(int)))
    valid_pred = predict_table(fitted, valid_table)
    report = evaluate(valid_pred, valid_table["category"].to_numpy(), labels=labels)
    print("Validation metrics:", report.summary())
    print(report.confusion)
    save_report(report, output_dir, legend=legend, prefix="validation")

    # 5) submission points and prediction area
    submission_points = load_submission_points(cfg.paths.submission_path, cfg.data.label_crs)
    print("Submission points:", len(submission_points))

    if cfg.classify.crop_to_points:
        crop_out = derived_dir / f"cropped_{cube_path.name}"
        meta_pred_in, cube_pred_in = crop_raster_to_points(
            str(cube_path),
            [submission_points, valid_points],
            buffer=cfg.classify.crop_buffer,
            out_path=str(crop_out),
        )
        print("Cropped cube shape:", cube_pred_in.shape)
    else:
        meta_pred_in, cube_pred_in = meta_cube, cube

    # 6) raster-wide prediction (single worker by default)
    meta_pred, pred_map = predict_raster(
        fitted,
        meta_pred_in,
        cube_pred_in,
        n_jobs=cfg.classify.predict_n_jobs,
        chunk_size=cfg.classify.predict_chunk,
        nodata_label=cfg.classify.nodata_label,
    )
    pred_out = output_dir / "prediction.tif"
    save_raster(
        str(pred_out), meta_pred, pred_map,
        dtype="uint16", nodata=cfg.classify.nodata_label,
        colormap=legend.to_colormap(),
    )
    print("Saved:", pred_out)

    # 7) map-level agreement with the validation raster on the prediction grid
    valid_on_grid = align_raster_to_meta(str(cfg.paths.valid_label_path), meta_pred)
    valid_nodata = cfg.data.label_nodata
    both = (pred_map != cfg.classify.nodata_label) & np.isfinite(valid_on_grid)
    if valid_nodata is not None:
        both &= valid_on_grid != valid_nodata
    map_report = None
    if np.any(both):
        map_report = evaluate(pred_map[both], valid_on_grid[both].astype(np.int32), labels=labels)
        print("Map-level metrics:", map_report.summary())
        save_report(map_report, output_dir, legend=legend, prefix="map")

    # 8) submission
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        submission = predict_submission(submission_points, meta_pred, pred_map)
    for w in caught:
        print("Warning:", w.message)
    sub_out = write_submission(submission, output_dir / "submission.csv")
    print("Submission category counts:", submission["category"].value_counts(dropna=False).to_dict())
    print("Saved:", sub_out)

    # 9) figures
    if cfg.classify.export_figures or cfg.classify.visualize_show:
        cube_rgb = visualize(
            cube_pred_in,
            kind="cube",
            title="Reflectance RGB",
            show=cfg.classify.visualize_show,
            low=0.5,
            high=99.5,
            gamma=1.5,
        )
        pred_rgb = visualize(
            pred_map,
            kind="label",
            legend=legend,
            nodata=cfg.classify.nodata_label,
            seed=cfg.classify.random_state,
            title="Prediction",
            show=cfg.classify.visualize_show,
            save_path=str(output_dir / "prediction.png") if cfg.classify.export_figures else None,
        )
        if cfg.classify.export_figures:
            compare_and_save(
                left_rgb_u8=cube_rgb,
                right_rgb_u8=pred_rgb,
                left_title="Reflectance RGB",
                right_title="Prediction",
                out_path=str(output_dir / "RGB_vs_prediction.png"),
            )
            cm_named = report.confusion.rename(index=legend.name_of, columns=legend.name_of)
            plot_confusion_matrix(
                cm_named,
                title="Validation confusion matrix",
                save_path=str(output_dir / "validation_confusion_matrix.png"),
            )
            plot_feature_importance(
                importance,
                save_path=str(output_dir / "feature_importance.png"),
            )
            print("Saved figures to:", output_dir)

    return {
        "fitted": fitted,
        "report": report,
        "map_report": map_report,
        "prediction": (meta_pred, pred_map),
        "submission": submission,
        "train_table": train_table,
        "valid_table": valid_table,
    }


if __name__ == "__main__":
    cfg = default_cfg()
    run_classification(cfg)
