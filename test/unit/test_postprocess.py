import unittest
import os
import numpy as np
import pandas as pd
import matplotlib

matplotlib.use("Agg")

from geolandcover.core.legend import CategoryLegend
from geolandcover.core.postprocess import (
    reshape_labels_to_raster,
    colorize_label_map,
    visualize,
    compare_and_save,
    plot_confusion_matrix,
    plot_feature_importance,
)


class TestPostprocess(unittest.TestCase):
    def setUp(self):
        self.h, self.w = 4, 5
        self.mask = np.zeros((self.h, self.w), dtype=bool)
        self.mask[1:3, 2:5] = True  # 6 valid pixels
        self.labels = np.array([1, 2, 2, 3, 3, 3], dtype=np.int32)
        self.legend = CategoryLegend.from_lists(
            [1, 2, 3], ["Water", "Forest", "Urban"],
            [(0, 0, 255), (0, 128, 0), (200, 0, 0)],
        )

        self.out_vis = "test_vis.png"
        self.out_cmp = "test_compare.png"
        self.out_cm = "test_cm.png"
        self.out_imp = "test_importance.png"

    def tearDown(self):
        for p in [self.out_vis, self.out_cmp, self.out_cm, self.out_imp]:
            if os.path.exists(p):
                os.remove(p)

    def test_reshape_labels_to_raster(self):
        label_map = reshape_labels_to_raster(
            self.labels,
            self.h,
            self.w,
            self.mask,
            nodata_label=0,
        )
        self.assertEqual(label_map.shape, (self.h, self.w))
        # nodata should be 0 outside mask
        self.assertTrue(np.all(label_map[~self.mask] == 0))
        # inside mask should be the labels themselves
        self.assertTrue(np.all(label_map[self.mask] == self.labels))

    def test_reshape_length_mismatch_raises(self):
        with self.assertRaises(ValueError):
            reshape_labels_to_raster(self.labels[:3], self.h, self.w, self.mask)

    def test_colorize_uses_legend_colors(self):
        label_map = reshape_labels_to_raster(self.labels, self.h, self.w, self.mask)
        label_map[0, 0] = 9  # not in legend -> random colour
        rgb = colorize_label_map(label_map, legend=self.legend, nodata=0)
        self.assertEqual(tuple(rgb[1, 2]), (0, 0, 255))
        self.assertEqual(tuple(rgb[2, 4]), (200, 0, 0))
        self.assertEqual(tuple(rgb[3, 0]), (0, 0, 0))
        self.assertGreater(int(rgb[0, 0].max()), 0)

    def test_visualize_label_returns_rgb(self):
        label_map = reshape_labels_to_raster(self.labels, self.h, self.w, self.mask)
        rgb = visualize(
            label_map,
            kind="label",
            legend=self.legend,
            nodata=0,
            show=False,
            save_path=self.out_vis,
            title="test",
        )
        self.assertEqual(rgb.shape, (self.h, self.w, 3))
        self.assertEqual(rgb.dtype, np.uint8)
        self.assertTrue(os.path.exists(self.out_vis))

    def test_visualize_cube_with_nan(self):
        cube = np.random.default_rng(0).random((7, self.h, self.w)).astype(np.float32)
        cube[:, 0, 0] = np.nan
        rgb = visualize(cube, kind="cube", show=False)
        self.assertEqual(rgb.shape, (self.h, self.w, 3))
        self.assertEqual(tuple(rgb[0, 0]), (0, 0, 0))

    def test_visualize_bad_kind_raises(self):
        with self.assertRaises(ValueError):
            visualize(np.zeros((2, 2)), kind="histogram", show=False)

    def test_compare_and_save(self):
        a = np.zeros((4, 4, 3), dtype=np.uint8)
        compare_and_save(a, a, out_path=self.out_cmp)
        self.assertTrue(os.path.exists(self.out_cmp))

    def test_plot_confusion_matrix_and_importance(self):
        cm = pd.DataFrame([[5, 1], [0, 4]], index=["Water", "Forest"], columns=["Water", "Forest"])
        plot_confusion_matrix(cm, save_path=self.out_cm)
        self.assertTrue(os.path.exists(self.out_cm))

        imp = pd.Series([0.5, 0.3, 0.2], index=["B5", "B4", "B1"])
        plot_feature_importance(imp, save_path=self.out_imp)
        self.assertTrue(os.path.exists(self.out_imp))


if __name__ == "__main__":
    unittest.main()
