"""
Label Map Helpers

Connected-component analysis over a 2-D grid of integer palette labels.
Unlike the region graph, every label value (fabric included) is segmented,
and components are numbered purely by raster order of their first pixel.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from scipy import ndimage

from .region_graph import FOUR_CONNECTED


@dataclass
class ConnectedComponents:
    count: int
    component_labels: np.ndarray                 # uint32, flat, 1..count
    region_sizes: Dict[int, int] = field(default_factory=dict)
    region_colors: Dict[int, int] = field(default_factory=dict)   # component -> label value


def as_label_grid(labels, width: int, height: int) -> np.ndarray:
    """
    Reshape a flat (or 2-D) label sequence to a (height, width) int64 grid.

    Raises:
        ValueError: the label count does not match width * height
    """
    arr = np.asarray(labels)
    if arr.size != width * height:
        raise ValueError(
            f"Label map has {arr.size} entries, expected {width}x{height}={width * height}"
        )
    return arr.reshape(height, width).astype(np.int64)


def find_connected_components(
    labels: Sequence[int],
    width: int,
    height: int,
) -> ConnectedComponents:
    """
    4-connected components of equal label values.

    Args:
        labels: Flat (row-major) or 2-D label grid
        width, height: Grid size

    Returns:
        ConnectedComponents with ids 1..count in raster order
    """
    grid = as_label_grid(labels, width, height)
    component_labels = np.zeros(grid.shape, dtype=np.uint32)
    first_pixel: list = []
    sizes: list = []
    colors: list = []

    offset = 0
    for value in np.unique(grid).tolist():
        labeled, count = ndimage.label(grid == value, structure=FOUR_CONNECTED)
        if count == 0:
            continue
        flat = labeled.ravel()
        members = np.flatnonzero(flat)
        firsts = np.full(count + 1, flat.size, dtype=np.int64)
        np.minimum.at(firsts, flat[members], members)
        areas = np.bincount(flat, minlength=count + 1)

        component_labels[labeled > 0] = labeled[labeled > 0] + offset
        first_pixel.extend(firsts[1:].tolist())
        sizes.extend(areas[1:].tolist())
        colors.extend([value] * count)
        offset += count

    # Renumber globally by first pixel
    order = np.argsort(np.array(first_pixel, dtype=np.int64), kind='stable')
    remap = np.zeros(offset + 1, dtype=np.uint32)
    remap[order + 1] = np.arange(1, offset + 1, dtype=np.uint32)
    component_labels = remap[component_labels].reshape(-1)

    result = ConnectedComponents(count=offset, component_labels=component_labels)
    for old_idx, new_id in enumerate(remap[1:].tolist()):
        result.region_sizes[new_id] = sizes[old_idx]
        result.region_colors[new_id] = colors[old_idx]
    return result


def label_grid_from_artifact(pixel_region_id: np.ndarray, width: int, height: int) -> Tuple[np.ndarray, Optional[int]]:
    """
    Region lookup grid as a vectorizer label map.

    Returns the (height, width) label grid and the label used for fabric
    (0), or None if the grid has no fabric pixels.
    """
    grid = as_label_grid(pixel_region_id, width, height)
    return grid, (0 if np.any(grid == 0) else None)
