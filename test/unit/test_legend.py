import unittest

from geolandcover.config.schema import default_cfg
from geolandcover.core.legend import Category, CategoryLegend, legend_from_cfg


class TestLegend(unittest.TestCase):
    def test_from_cfg(self):
        legend = legend_from_cfg(default_cfg().legend)
        self.assertEqual(legend.codes, (1, 2, 3, 4, 5))
        self.assertEqual(legend.name_of(2), "Forest")
        self.assertEqual(len(legend.to_colormap()), 5)

    def test_codes_sorted_and_unique(self):
        legend = CategoryLegend((Category(3, "c"), Category(1, "a")))
        self.assertEqual(legend.codes, (1, 3))
        with self.assertRaises(ValueError):
            CategoryLegend((Category(1, "a"), Category(1, "b")))

    def test_unknown_code(self):
        legend = CategoryLegend.from_lists([1], ["a"])
        self.assertEqual(legend.name_of(9), "9")
        self.assertIsNone(legend.color_of(9))

    def test_with_colormap(self):
        legend = CategoryLegend.from_lists([1, 2], ["a", "b"], [(1, 2, 3), (4, 5, 6)])
        updated = legend.with_colormap({1: (10, 20, 30, 255)})
        self.assertEqual(updated.color_of(1), (10, 20, 30))
        self.assertEqual(updated.color_of(2), (4, 5, 6))
        self.assertIs(legend.with_colormap(None), legend)
        self.assertEqual(updated.to_colormap()[1], (10, 20, 30, 255))

    def test_length_mismatch_raises(self):
        with self.assertRaises(ValueError):
            CategoryLegend.from_lists([1, 2], ["a"])


if __name__ == "__main__":
    unittest.main()
