from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier

from geolandcover.core.feature import extract_pixel_features
from geolandcover.core.legend import CategoryLegend
from geolandcover.core.postprocess import reshape_labels_to_raster
from geolandcover.core.preprocess import make_valid_mask


@dataclass(frozen=True)
class FittedClassifier:
    """
    A trained random forest together with the band layout it expects.

    Produced once by train_classifier and only read afterwards.
    """

    model: RandomForestClassifier
    feature_names: Tuple[str, ...]
    classes: Tuple[int, ...]
    target: str = "category"
    legend: Optional[CategoryLegend] = None

    def feature_importance(self):
        """Mean impurity decrease per band, highest first."""
        imp = pd.Series(self.model.feature_importances_, index=list(self.feature_names), name="importance")
        return imp.sort_values(ascending=False)


def train_classifier(
    table,
    target = "category",
    n_estimators = 100,
    random_state = 1,
    n_jobs = -1,
    legend = None,
):
    """
    Fit a random forest on a sample table.

    Parameters
    ----------
    table : pandas.DataFrame
        Band columns plus the target column. Rows must be complete.
    target : str, optional
        Name of the category column.
    n_estimators : int, optional
        Number of trees.
    random_state : int, optional
        Random seed (bootstrap draws and feature subsets).
    n_jobs : int, optional
        Workers used for training.
    legend : CategoryLegend, optional
        Carried along for reporting.

    Returns
    -------
    FittedClassifier
    """
    if target not in table.columns:
        raise ValueError(f"target column '{target}' not in table.")
    if len(table) == 0:
        raise ValueError("Cannot train on an empty table.")

    feature_names = tuple(c for c in table.columns if c != target)
    if not feature_names:
        raise ValueError("table has no feature columns.")

    X_train = table[list(feature_names)]
    y_train = table[target].to_numpy()

    clf = RandomForestClassifier(
        n_estimators=n_estimators,
        random_state=random_state,
        n_jobs=n_jobs,
    )
    clf.fit(X_train, y_train)

    return FittedClassifier(
        model=clf,
        feature_names=feature_names,
        classes=tuple(int(c) for c in clf.classes_),
        target=target,
        legend=legend,
    )


def _check_columns(fitted, table):
    missing = [c for c in fitted.feature_names if c not in table.columns]
    if missing:
        raise ValueError(f"Missing feature columns: {missing}")
    present = [c for c in table.columns if c in fitted.feature_names]
    if tuple(present) != fitted.feature_names:
        raise ValueError(
            f"Feature column order {present} != training order {list(fitted.feature_names)}"
        )


def predict_table(fitted, table):
    """
    Predict one category per row of a sample table.

    The target column, if present, is ignored.

    Returns
    -------
    ndarray
        Predicted category codes with shape (N,).
    """
    _check_columns(fitted, table)
    X = table[list(fitted.feature_names)]
    return fitted.model.predict(X).astype(np.int32)


def _with_workers(fitted, n_jobs):
    # shallow copy shares the trees; only n_jobs differs
    runner = copy.copy(fitted.model)
    runner.set_params(n_jobs=n_jobs)
    return runner


def predict_raster(
    fitted,
    meta,
    cube,
    n_jobs = 1,
    chunk_size = 500000,
    nodata_label = 0,
):
    """
    Classify every pixel of an image cube.

    Parameters
    ----------
    fitted : FittedClassifier
        Trained model; its feature order must match the cube band order.
    meta : dict
        Cube metadata.
    cube : ndarray
        Image data with shape (B, H, W).
    n_jobs : int, optional
        Workers for prediction. Keep 1 when the raster side already
        runs in parallel.
    chunk_size : int, optional
        Pixels per predict call.
    nodata_label : int, optional
        Label for pixels with any missing band value.

    Returns
    -------
    meta : dict
        Single-band metadata for the label map.
    label_map : ndarray
        Category codes with shape (H, W), dtype uint16.
    """
    if cube.ndim != 3:
        raise ValueError(f"cube must be (B,H,W), got {cube.shape}")
    if cube.shape[0] != len(fitted.feature_names):
        raise ValueError(
            f"cube has {cube.shape[0]} bands, model expects {len(fitted.feature_names)}"
        )

    mask = make_valid_mask(cube)
    features, idx, (h, w) = extract_pixel_features(cube, mask)

    runner = _with_workers(fitted, n_jobs)
    labels = np.empty((features.shape[0],), dtype=np.int32)
    if chunk_size is None or chunk_size <= 0:
        chunk_size = max(features.shape[0], 1)

    for start in range(0, features.shape[0], chunk_size):
        end = min(start + chunk_size, features.shape[0])
        X = pd.DataFrame(features[start:end], columns=list(fitted.feature_names))
        labels[start:end] = runner.predict(X).astype(np.int32)

    label_map = reshape_labels_to_raster(
        labels, h, w, mask,
        nodata_label=nodata_label,
        label_offset=0,
    ).astype(np.uint16)

    out_meta = meta.copy()
    out_meta.update(count=1, dtype="uint16", nodata=nodata_label)
    return out_meta, label_map


def check_category_domain(train_table, valid_table, target="category"):
    """
    Categories present in the validation table but never seen in training.
    """
    seen = set(pd.unique(train_table[target]))
    return sorted(int(c) for c in pd.unique(valid_table[target]) if c not in seen)
