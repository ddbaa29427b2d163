from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


RGB = Tuple[int, int, int]


@dataclass(frozen=True)
class Category:
    code: int
    name: str
    color: RGB = (128, 128, 128)


@dataclass(frozen=True)
class CategoryLegend:
    """
    Integer category codes with a readable name and a display colour.

    Codes are kept sorted so tables, plots and colormaps share one order.
    """

    categories: Tuple[Category, ...]

    def __post_init__(self):
        codes = [c.code for c in self.categories]
        if len(set(codes)) != len(codes):
            raise ValueError(f"Duplicate category codes in legend: {codes}")
        object.__setattr__(
            self, "categories", tuple(sorted(self.categories, key=lambda c: c.code))
        )

    @classmethod
    def from_lists(cls, codes, names, colors=None):
        if len(codes) != len(names):
            raise ValueError("codes and names length mismatch.")
        if colors is not None and len(colors) != len(codes):
            raise ValueError("codes and colors length mismatch.")
        cats = []
        for i, (code, name) in enumerate(zip(codes, names)):
            color = tuple(int(v) for v in colors[i][:3]) if colors is not None else (128, 128, 128)
            cats.append(Category(int(code), str(name), color))
        return cls(tuple(cats))

    @property
    def codes(self):
        return tuple(c.code for c in self.categories)

    @property
    def names(self):
        return tuple(c.name for c in self.categories)

    def name_of(self, code):
        for c in self.categories:
            if c.code == int(code):
                return c.name
        return str(code)

    def color_of(self, code):
        for c in self.categories:
            if c.code == int(code):
                return c.color
        return None

    def with_colormap(self, colormap: Optional[Dict[int, tuple]]):
        """
        Return a legend whose colours come from a raster colormap.

        Codes missing from the colormap keep their current colour.
        """
        if not colormap:
            return self
        cats = []
        for c in self.categories:
            rgba = colormap.get(c.code)
            color = tuple(int(v) for v in rgba[:3]) if rgba is not None else c.color
            cats.append(Category(c.code, c.name, color))
        return CategoryLegend(tuple(cats))

    def to_colormap(self):
        """Colormap dict accepted by rasterio's write_colormap."""
        return {c.code: (*c.color, 255) for c in self.categories}


def legend_from_cfg(legend_cfg):
    return CategoryLegend.from_lists(legend_cfg.codes, legend_cfg.names, legend_cfg.colors)
