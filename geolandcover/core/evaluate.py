from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd
from sklearn import metrics


@dataclass(frozen=True)
class EvaluationReport:
    confusion: pd.DataFrame     # rows = predicted, columns = true
    accuracy: float
    balanced_accuracy: float
    kappa: float
    producer_accuracy: pd.Series    # per true class (recall)
    user_accuracy: pd.Series    # per predicted class (precision)

    def summary(self):
        return {
            "n": int(self.confusion.to_numpy().sum()),
            "accuracy": self.accuracy,
            "balanced_accuracy": self.balanced_accuracy,
            "kappa": self.kappa,
        }


def confusion_matrix(predicted, true, labels=None):
    """
    Cross-tabulate predicted against true categories.

    Parameters
    ----------
    predicted : array-like
        Predicted category per sample.
    true : array-like
        Reference category per sample, same length.
    labels : list, optional
        Categories to include, in order. Defaults to every category seen
        in either vector.

    Returns
    -------
    pandas.DataFrame
        Counts; rows = predicted category, columns = true category.
    """
    predicted = np.asarray(predicted)
    true = np.asarray(true)
    if predicted.shape != true.shape:
        raise ValueError(f"predicted {predicted.shape} and true {true.shape} length mismatch.")

    if labels is None:
        labels = np.union1d(np.unique(predicted), np.unique(true))
    labels = list(labels)

    # sklearn puts true on rows; transpose to predicted-on-rows
    cm = metrics.confusion_matrix(true, predicted, labels=labels).T
    return pd.DataFrame(
        cm,
        index=pd.Index(labels, name="predicted"),
        columns=pd.Index(labels, name="true"),
    )


def _counts(cm):
    return np.asarray(cm, dtype="float64")


def accuracy(cm):
    """Fraction of samples on the diagonal."""
    c = _counts(cm)
    total = c.sum()
    if total == 0:
        return float("nan")
    return float(np.trace(c) / total)


def balanced_accuracy(cm):
    """
    Mean recall over the classes present in the true vector.
    """
    c = _counts(cm)
    true_totals = c.sum(axis=0)
    present = true_totals > 0
    if not np.any(present):
        return float("nan")
    recall = np.diag(c)[present] / true_totals[present]
    return float(recall.mean())


def kappa(cm):
    """
    Cohen's kappa: (observed - chance agreement) / (1 - chance agreement).
    """
    c = _counts(cm)
    total = c.sum()
    if total == 0:
        return float("nan")
    po = np.trace(c) / total
    pe = float((c.sum(axis=1) * c.sum(axis=0)).sum() / total ** 2)
    if pe == 1.0:
        # a single class in both vectors
        return 1.0 if po == 1.0 else 0.0
    return float((po - pe) / (1.0 - pe))


def evaluate(predicted, true, labels=None):
    """
    Confusion matrix and agreement metrics for predicted vs. true labels.

    Returns
    -------
    EvaluationReport
    """
    cm = confusion_matrix(predicted, true, labels=labels)
    c = _counts(cm)
    diag = np.diag(c)

    with np.errstate(divide="ignore", invalid="ignore"):
        producer = diag / c.sum(axis=0)
        user = diag / c.sum(axis=1)

    return EvaluationReport(
        confusion=cm,
        accuracy=accuracy(cm),
        balanced_accuracy=balanced_accuracy(cm),
        kappa=kappa(cm),
        producer_accuracy=pd.Series(producer, index=cm.columns, name="producer_accuracy"),
        user_accuracy=pd.Series(user, index=cm.index, name="user_accuracy"),
    )


def save_report(report, out_dir, legend=None, prefix="validation"):
    """
    Write confusion matrix, per-class and overall metrics as CSV files.

    Returns
    -------
    dict
        Written paths by kind.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    cm = report.confusion.copy()
    per_class = pd.DataFrame({
        "producer_accuracy": report.producer_accuracy,
        "user_accuracy": report.user_accuracy,
    })
    per_class.index.name = "category"
    if legend is not None:
        cm.index = pd.Index([legend.name_of(c) for c in cm.index], name="predicted")
        cm.columns = pd.Index([legend.name_of(c) for c in cm.columns], name="true")
        per_class.insert(0, "name", [legend.name_of(c) for c in per_class.index])

    paths = {
        "confusion": out_dir / f"{prefix}_confusion_matrix.csv",
        "per_class": out_dir / f"{prefix}_per_class.csv",
        "metrics": out_dir / f"{prefix}_metrics.csv",
    }
    cm.to_csv(paths["confusion"])
    per_class.to_csv(paths["per_class"])
    pd.DataFrame([report.summary()]).to_csv(paths["metrics"], index=False)
    return paths
