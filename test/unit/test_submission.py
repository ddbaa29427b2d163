import unittest
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
from pyproj import Transformer

from geolandcover.core.submission import load_submission_points, predict_submission, write_submission
from raster_fixtures import grid_meta, UTM, BNG, ORIGIN_X, ORIGIN_Y, PIXEL


class TestSubmission(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)

        # prediction raster in UTM: column c holds category c+1, one nodata pixel
        self.pred = np.tile(np.arange(1, 6, dtype=np.uint16), (4, 1))
        self.pred[3, 4] = 0
        self.meta = grid_meta(4, 5, dtype="uint16", nodata=0)

        # submission coordinates in the national grid
        to_bng = Transformer.from_crs(UTM, BNG, always_xy=True)
        utm_xy = [
            (ORIGIN_X + 4.5 * PIXEL, ORIGIN_Y - 0.5 * PIXEL),    # category 5
            (ORIGIN_X + 0.5 * PIXEL, ORIGIN_Y - 2.5 * PIXEL),    # category 1
            (ORIGIN_X - 5000.0, ORIGIN_Y),                       # outside
            (ORIGIN_X + 2.5 * PIXEL, ORIGIN_Y - 1.5 * PIXEL),    # category 3
            (ORIGIN_X + 4.5 * PIXEL, ORIGIN_Y - 3.5 * PIXEL),    # nodata pixel
        ]
        xs, ys = to_bng.transform(*zip(*utm_xy))
        self.csv = self.dir / "submission.csv"
        pd.DataFrame({"X": xs, "Y": ys, "category": [np.nan] * len(xs)}).to_csv(self.csv, index=False)

    def tearDown(self):
        self.tmp.cleanup()

    def test_load_submission_points(self):
        pts = load_submission_points(self.csv, BNG)
        self.assertEqual(len(pts), 5)
        self.assertEqual(list(pts.columns[:3]), ["X", "Y", "category"])
        np.testing.assert_allclose(pts.geometry.x, pts["X"])

    def test_missing_file_and_columns_raise(self):
        with self.assertRaises(FileNotFoundError):
            load_submission_points(self.dir / "nope.csv", BNG)
        bad = self.dir / "bad.csv"
        pd.DataFrame({"lon": [1.0], "lat": [2.0]}).to_csv(bad, index=False)
        with self.assertRaises(ValueError):
            load_submission_points(bad, BNG)

    def test_predict_submission_keeps_order_and_flags_missing(self):
        pts = load_submission_points(self.csv, BNG)
        with self.assertWarns(UserWarning):
            out = predict_submission(pts, self.meta, self.pred)

        self.assertEqual(len(out), 5)
        self.assertNotIn("geometry", out.columns)
        np.testing.assert_allclose(out["X"], pts["X"])
        self.assertEqual(out["category"].tolist()[:2], [5, 1])
        self.assertEqual(out["category"].iloc[3], 3)
        self.assertTrue(pd.isna(out["category"].iloc[2]))
        self.assertTrue(pd.isna(out["category"].iloc[4]))

    def test_write_submission(self):
        pts = load_submission_points(self.csv, BNG)
        with self.assertWarns(UserWarning):
            out = predict_submission(pts, self.meta, self.pred)
        path = write_submission(out, self.dir / "final" / "submission.csv")

        lines = path.read_text().splitlines()
        self.assertEqual(lines[0], "X,Y,category")
        self.assertEqual(len(lines), 6)
        self.assertTrue(lines[3].endswith(","))   # outside point: empty category
        back = pd.read_csv(path)
        np.testing.assert_allclose(back["X"], pts["X"])


if __name__ == "__main__":
    unittest.main()
