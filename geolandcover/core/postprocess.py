from __future__ import annotations
import numpy as np
import matplotlib.pyplot as plt


def reshape_labels_to_raster(
    labels,
    height,
    width,
    mask,
    nodata_label = 0,
    label_offset = 0,
):
    """
    Scatter 1D labels back to a 2D raster using a validity mask.

    Parameters
    ----------
    labels : ndarray
        Labels for valid pixels.
    height : int
        Output raster height.
    width : int
        Output raster width.
    mask : ndarray of bool
        Valid-pixel mask with shape (height, width).
    nodata_label : int, optional
        Label value for invalid pixels.
    label_offset : int, optional
        Offset added to labels before writing (category codes are written as is by default).

    Returns
    -------
    ndarray
        Label map with shape (height, width).
    """
    if mask.shape != (height, width):
        raise ValueError("mask shape mismatch.")

    mask_flat = mask.reshape(-1)
    idx = np.where(mask_flat)[0]

    if labels.shape[0] != idx.shape[0]:
        raise ValueError(f"labels length {labels.shape[0]} != valid pixels {idx.shape[0]}")

    out = np.full((height * width,), nodata_label, dtype=np.int32)
    out[idx] = labels + label_offset
    return out.reshape(height, width)


def colorize_label_map(
    label_map,
    legend = None,
    nodata = 0,
    seed = 42,
):
    """
    Map integer labels to RGB colors for visualization.

    Parameters
    ----------
    label_map : ndarray
        Integer label map with shape (H, W).
    legend : CategoryLegend, optional
        Colours per category code. Codes without a legend colour get a
        random one.
    nodata : int, optional
        Label value treated as background (black).
    seed : int, optional
        RNG seed for colours not in the legend.

    Returns
    -------
    ndarray
        RGB image with shape (H, W, 3), dtype = uint8.
    """
    if label_map.ndim != 2:
        raise ValueError("label_map must be (H,W)")

    rgb = np.zeros((label_map.shape[0], label_map.shape[1], 3), dtype=np.uint8)

    classes = np.unique(label_map)
    classes = classes[classes != nodata]

    rng = np.random.default_rng(seed)
    for c in classes:
        color = legend.color_of(c) if legend is not None else None
        if color is None:
            color = rng.integers(40, 256, size=3, dtype=np.uint8)
        rgb[label_map == c] = color

    return rgb


def _stretch_percentile(
    image,
    low = 2.0,
    high = 98.0
):
    """
    Apply per-channel percentile stretch for visualization.

    Parameters
    ----------
    image : ndarray
        RGB float image with shape (H, W, 3).
    low : float, optional
        Lower percentile.
    high : float, optional
        Upper percentile.

    Returns
    -------
    ndarray
        Stretched RGB float image in [0, 1].
    """
    out = np.empty_like(image, dtype=np.float32)
    for k in range(3):
        band = image[..., k]
        finite = np.isfinite(band)
        if not np.any(finite):
            out[..., k] = 0.0
            continue
        lo = np.percentile(band[finite], low)
        hi = np.percentile(band[finite], high)
        if hi <= lo:
            out[..., k] = 0.0
        else:
            out[..., k] = np.clip((band - lo) / (hi - lo), 0.0, 1.0)
    return np.nan_to_num(out, nan=0.0)


def _cube_to_rgb_u8(
    cube,
    rgb_bands = (3, 2, 1),
    low = 1.0,
    high = 99.5,
    gamma = 1.4,
):
    """
    Convert a reflectance cube to an RGB uint8 image.

    Parameters
    ----------
    cube : ndarray
        Image cube with shape (B, H, W).
    rgb_bands : tuple of int, optional
        Zero-based indices of the red, green and blue bands
        (B4, B3, B2 for a B1..B7 Landsat stack).
    low : float, optional
        Lower percentile for stretching.
    high : float, optional
        Upper percentile for stretching.
    gamma : float or None, optional
        Gamma correction (None disables).

    Returns
    -------
    ndarray
        RGB image with shape (H, W, 3), dtype uint8.
    """
    if cube.ndim != 3:
        raise ValueError(f"cube must be (B,H,W), got {cube.shape}")
    if max(rgb_bands) >= cube.shape[0]:
        raise ValueError(f"rgb_bands {rgb_bands} out of range for {cube.shape[0]} bands")

    rgb = np.stack([cube[i].astype(np.float32) for i in rgb_bands], axis=-1)  # (H,W,3)
    rgb = _stretch_percentile(rgb, low=low, high=high)

    # gamma correction: brighten dark tones (remote-sensing friendly)
    if gamma is not None and gamma > 0:
        rgb = np.clip(rgb, 0.0, 1.0) ** (1.0 / gamma)

    return (rgb * 255.0).round().astype(np.uint8)


def _finish_figure(title, show, save_path):
    if title:
        plt.title(title)
    if save_path is not None:
        plt.savefig(save_path, dpi=200, bbox_inches="tight")
    if show:
        plt.show()
    else:
        plt.close()


def visualize(
    data,
    kind,
    legend = None,
    nodata = 0,
    seed = 42,
    title = "",
    rgb_bands = (3, 2, 1),
    low = 2.0,
    high = 98.0,
    show = True,
    save_path = None,
    gamma = 1.4,
):
    """
    Visualize a label map or reflectance cube as an RGB uint8 image.

    Parameters
    ----------
    data : ndarray
        Input data.
    kind : {"label", "cube"}
        Visualization type.
    legend : CategoryLegend, optional
        Colours and names for "label" mode; names are drawn as a legend.
    nodata : int, optional
        Background label for "label" mode.
    seed : int, optional
        RNG seed for "label" mode.
    title : str, optional
        Plot title (if displayed/saved).
    rgb_bands : tuple of int, optional
        Band indices for "cube" mode.
    low : float, optional
        Lower percentile for stretching.
    high : float, optional
        Upper percentile for stretching.
    show : bool, optional
        Show the figure if True.
    save_path : str or None, optional
        Save figure to this path if provided.
    gamma : float or None, optional
        Gamma correction for "cube" mode.

    Returns
    -------
    ndarray
        RGB image with shape (H, W, 3), dtype uint8.
    """
    if kind == "label":
        rgb_u8 = colorize_label_map(data, legend=legend, nodata=nodata, seed=seed)
    elif kind == "cube":
        rgb_u8 = _cube_to_rgb_u8(
            data,
            rgb_bands=rgb_bands,
            low=low,
            high=high,
            gamma=gamma,
        )
    else:
        raise ValueError("kind must be 'label' or 'cube'")

    if show or save_path is not None:
        plt.figure()
        plt.imshow(rgb_u8)
        if kind == "label" and legend is not None:
            from matplotlib.patches import Patch
            handles = [
                Patch(color=np.array(c.color) / 255.0, label=c.name)
                for c in legend.categories
            ]
            plt.legend(handles=handles, loc="lower right", fontsize="small")
        plt.axis("off")
        _finish_figure(title, show, save_path)

    return rgb_u8


def compare_and_save(
    left_rgb_u8,
    right_rgb_u8,
    left_title = "Left",
    right_title = "Right",
    out_path = "compare.png",
):
    """
    Save a side-by-side comparison of two RGB images.

    Parameters
    ----------
    left_rgb_u8 : ndarray
        Left RGB image.
    right_rgb_u8 : ndarray
        Right RGB image.
    left_title : str, optional
        Title for left panel.
    right_title : str, optional
        Title for right panel.
    out_path : str, optional
        Output file path.

    Returns
    -------
    None
    """
    plt.figure(figsize=(10, 5))

    plt.subplot(1, 2, 1)
    plt.imshow(left_rgb_u8)
    plt.title(left_title)
    plt.axis("off")

    plt.subplot(1, 2, 2)
    plt.imshow(right_rgb_u8)
    plt.title(right_title)
    plt.axis("off")

    plt.tight_layout()
    plt.savefig(out_path, dpi=200, bbox_inches="tight")
    plt.close()


def plot_confusion_matrix(cm, title="Confusion matrix", show=False, save_path=None):
    """
    Draw a confusion matrix (rows = predicted, columns = true).

    Parameters
    ----------
    cm : pandas.DataFrame
        Counts with labelled index (predicted) and columns (true).
    """
    counts = cm.to_numpy()
    plt.figure(figsize=(6, 5))
    plt.imshow(counts, cmap="Blues")
    plt.colorbar(label="count")
    plt.xticks(range(counts.shape[1]), [str(c) for c in cm.columns], rotation=45, ha="right")
    plt.yticks(range(counts.shape[0]), [str(r) for r in cm.index])
    plt.xlabel("true")
    plt.ylabel("predicted")

    vmax = counts.max() if counts.size else 0
    for i in range(counts.shape[0]):
        for j in range(counts.shape[1]):
            plt.text(
                j, i, str(counts[i, j]),
                ha="center", va="center",
                color="white" if counts[i, j] > vmax / 2 else "black",
                fontsize="small",
            )
    plt.tight_layout()
    _finish_figure(title, show, save_path)


def plot_feature_importance(importance, title="Feature importance", show=False, save_path=None):
    """
    Bar chart of per-band importance.

    Parameters
    ----------
    importance : pandas.Series
        Importance values indexed by band name.
    """
    plt.figure(figsize=(6, 4))
    plt.bar([str(i) for i in importance.index], importance.to_numpy())
    plt.ylabel("mean decrease in impurity")
    plt.tight_layout()
    _finish_figure(title, show, save_path)
