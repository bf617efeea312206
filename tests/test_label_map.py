import numpy as np
import pytest

from stitchgraph.label_map import as_label_grid, find_connected_components, label_grid_from_artifact
from stitchgraph.region_graph import build_region_graph

from helpers import make_pattern


def test_components_numbered_by_first_pixel():
    result = find_connected_components([0, 0, 1, 1, 0, 1], 3, 2)
    assert result.count == 3
    assert result.component_labels.tolist() == [1, 1, 2, 3, 1, 2]
    assert result.region_sizes == {1: 3, 2: 2, 3: 1}
    assert result.region_colors == {1: 0, 2: 1, 3: 1}


def test_components_use_four_connectivity():
    result = find_connected_components([[5, 7], [7, 5]], 2, 2)
    assert result.count == 4
    assert result.component_labels.tolist() == [1, 2, 3, 4]


def test_single_label_grid():
    result = find_connected_components(np.zeros((3, 4), dtype=np.uint16), 4, 3)
    assert result.count == 1
    assert result.region_sizes == {1: 12}


def test_size_mismatch_raises():
    with pytest.raises(ValueError):
        as_label_grid([0, 1, 2], 2, 2)
    with pytest.raises(ValueError):
        find_connected_components([0] * 5, 2, 2)


def test_label_grid_from_artifact():
    artifact = build_region_graph(make_pattern(['A.', 'AB']))
    grid, fabric = label_grid_from_artifact(artifact.pixel_region_id, 2, 2)
    assert grid.tolist() == [[1, 0], [1, 2]]
    assert fabric == 0

    full = build_region_graph(make_pattern(['AB']))
    _, fabric = label_grid_from_artifact(full.pixel_region_id, 2, 1)
    assert fabric is None
