import numpy as np
import pytest

from stitchgraph.vectorize import (
    Path,
    VectorizeOptions,
    boundary_mask,
    find_contours,
    paths_to_svg,
    perpendicular_distance,
    simplify_path,
    smooth_path,
    trace_moore_contour,
    vectorize,
    vectorize_label_map,
)

BLOCK_OUTLINE = [(1, 1), (2, 1), (3, 1), (3, 2), (3, 3), (2, 3), (1, 3), (1, 2)]


def centered_block():
    """5x5 label map: label 1 fills the middle 3x3, label 0 the border."""
    labels = np.zeros((5, 5), dtype=np.uint16)
    labels[1:4, 1:4] = 1
    return labels


def test_trace_full_block_clockwise():
    mask = np.ones((3, 3), dtype=bool)
    assert trace_moore_contour(mask, 0, 0) == [
        (0, 0), (1, 0), (2, 0), (2, 1), (2, 2), (1, 2), (0, 2), (0, 1),
    ]


def test_trace_respects_iteration_cap():
    mask = np.ones((3, 3), dtype=bool)
    assert len(trace_moore_contour(mask, 0, 0, max_iterations=3)) == 3


def test_boundary_mask():
    mask = np.ones((3, 3), dtype=bool)
    assert boundary_mask(mask).tolist() == [
        [True, True, True],
        [True, False, True],
        [True, True, True],
    ]
    mask[1, 2] = False
    assert boundary_mask(mask)[1, 1]
    assert not boundary_mask(mask)[1, 2]


def test_find_contours_drops_tiny_shapes():
    assert find_contours(np.ones((1, 1), dtype=bool)) == []
    assert find_contours(np.ones((1, 2), dtype=bool)) == []
    assert len(find_contours(np.ones((2, 2), dtype=bool))) == 1


def test_raw_contours_per_label():
    paths = vectorize_label_map(centered_block(), 5, 5, fabric_labels=[0])
    assert [p.label for p in paths] == [0, 1]

    border, block = paths
    assert border.is_fabric and not block.is_fabric
    assert len(border.points) == 16
    assert {(int(x), int(y)) for x, y in border.points} == {
        (x, y) for y in range(5) for x in range(5) if x in (0, 4) or y in (0, 4)
    }
    assert block.points == [(float(x), float(y)) for x, y in BLOCK_OUTLINE]


def test_flat_labels_accepted():
    flat = centered_block().reshape(-1).tolist()
    paths = vectorize_label_map(flat, 5, 5)
    assert [p.label for p in paths] == [0, 1]


def test_manual_mask_forces_fabric():
    mask = np.ones((5, 5), dtype=np.uint8)
    mask[1:4, 1:4] = 0
    paths = vectorize_label_map(centered_block(), 5, 5, manual_mask=mask)
    assert [p.label for p in paths] == [0]

    options = VectorizeOptions(manual_mask=np.zeros(25, dtype=np.uint8))
    assert vectorize(centered_block(), 5, 5, options=options) == []


def test_mismatched_sizes_raise():
    with pytest.raises(ValueError):
        vectorize([0, 1, 2], 2, 2)
    with pytest.raises(ValueError):
        vectorize_label_map(centered_block(), 5, 5, manual_mask=[1, 1])


def test_empty_label_map():
    assert vectorize([], 0, 0) == []


def test_vectorize_defaults_smooth_outlines():
    paths = vectorize(centered_block(), 5, 5, fabric_labels=[0])
    assert [p.label for p in paths] == [0, 1]
    block = paths[1]
    assert len(block.points) > len(BLOCK_OUTLINE) // 2
    for x, y in block.points:
        assert 1 <= x <= 3 and 1 <= y <= 3


def test_vectorize_without_smoothing_is_simplified_raw_contour():
    options = VectorizeOptions(simplify=0.5, smooth=0)
    raw = vectorize_label_map(centered_block(), 5, 5)
    paths = vectorize(centered_block(), 5, 5, options=options)
    assert [p.points for p in paths] == [simplify_path(p.points, 0.5) for p in raw]
    assert paths[1].points == [(1.0, 1.0), (3.0, 1.0), (3.0, 3.0), (1.0, 3.0), (1.0, 2.0)]


def test_perpendicular_distance():
    assert perpendicular_distance((1, 1), (0, 0), (2, 0)) == pytest.approx(1.0)
    assert perpendicular_distance((3, 4), (0, 0), (0, 0)) == pytest.approx(5.0)


def test_simplify_collinear_points():
    points = [(0, 0), (1, 0), (2, 0), (3, 0)]
    assert simplify_path(points, 0.5) == [(0, 0), (3, 0)]


def test_simplify_keeps_spikes():
    points = [(0, 0), (1, 0), (2, 5), (3, 0), (4, 0)]
    assert simplify_path(points, 1.0) == [(0, 0), (2, 5), (4, 0)]
    assert simplify_path(points, 0.5) == points


def test_simplify_short_paths_unchanged():
    assert simplify_path([], 1.0) == []
    assert simplify_path([(0, 0)], 1.0) == [(0, 0)]
    assert simplify_path([(0, 0), (5, 5)], 1.0) == [(0, 0), (5, 5)]


def test_simplify_long_path():
    points = [(float(i), float(2 * (i % 2))) for i in range(1500)]
    simplified = simplify_path(points, 0.5)
    assert simplified[0] == points[0]
    assert simplified[-1] == points[-1]
    assert len(simplified) > 2


def test_smooth_cuts_corners():
    square = [(0, 0), (4, 0), (4, 4), (0, 4)]
    once = smooth_path(square, 1)
    assert len(once) == 8
    assert once[:2] == [(1.0, 0.0), (3.0, 0.0)]
    assert once[-2:] == [(0.0, 3.0), (0.0, 1.0)]
    assert len(smooth_path(square, 2)) == 16


def test_smooth_degenerate_paths():
    assert smooth_path([(0, 0), (1, 1)], 3) == [(0, 0), (1, 1)]
    assert smooth_path([(0, 0), (1, 0), (1, 1)], 0) == [(0, 0), (1, 0), (1, 1)]


def test_path_to_dict():
    path = Path(points=[(0.0, 0.0), (1.0, 0.5)], label=3, is_fabric=False)
    assert path.to_dict() == {'points': [[0.0, 0.0], [1.0, 0.5]], 'label': 3, 'isFabric': False}


def test_paths_to_svg():
    paths = vectorize(centered_block(), 5, 5, fabric_labels=[0])
    svg = paths_to_svg(paths, 5, 5, {1: '#CE1938'})
    assert svg.startswith('<?xml')
    assert 'viewBox="0 0 5 5"' in svg
    assert 'fill:#CE1938' in svg
    assert 'label_0_' not in svg

    with_fabric = paths_to_svg(paths, 5, 5, {1: '#CE1938'}, include_fabric=True)
    assert 'id="label_0_0"' in with_fabric
    assert 'fill:#000000' in with_fabric


def full_grid_contours(labels, label):
    """Trace one label on the whole grid, without cropping to its bounding box."""
    height, width = labels.shape
    return [
        [(float(x), float(y)) for x, y in contour]
        for contour in find_contours(labels == label, width * height)
    ]


def test_islands_are_separate_paths():
    labels = np.array([
        [1, 1, 0, 1, 1],
        [1, 1, 0, 1, 1],
    ], dtype=np.uint16)
    paths = vectorize_label_map(labels, 5, 2)

    # The one-pixel-wide fabric column is too thin to outline
    assert [p.label for p in paths] == [1, 1]
    assert paths[0].points == [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]
    assert paths[1].points == [(3.0, 0.0), (4.0, 0.0), (4.0, 1.0), (3.0, 1.0)]


def test_thick_ring_has_outer_and_inner_contours():
    labels = np.ones((6, 6), dtype=np.uint16)
    labels[2:4, 2:4] = 0
    paths = vectorize_label_map(labels, 6, 6, fabric_labels=[0])

    (hole,) = [p for p in paths if p.label == 0]
    assert hole.is_fabric
    assert hole.points == [(2.0, 2.0), (3.0, 2.0), (3.0, 3.0), (2.0, 3.0)]

    ring = [p.points for p in paths if p.label == 1]
    assert len(ring) > 1
    outer = ring[0]
    assert outer[0] == (0.0, 0.0)
    assert len(outer) == 20
    assert {(int(x), int(y)) for x, y in outer} == {
        (x, y) for y in range(6) for x in range(6) if x in (0, 5) or y in (0, 5)
    }

    # Some later contour walks around the hole on all four sides
    around_hole = [set(points) for points in ring[1:]]
    assert any(
        {(1.0, 2.0), (4.0, 2.0), (3.0, 1.0), (2.0, 4.0)} <= points
        for points in around_hole
    )


@pytest.mark.parametrize('seed', [1, 2, 3, 4])
def test_cropped_tracing_matches_full_grid(seed):
    rng = np.random.default_rng(seed)
    labels = rng.integers(0, 3, size=(8, 10)).astype(np.uint16)
    paths = vectorize_label_map(labels, 10, 8)

    expected = []
    for label in np.unique(labels).tolist():
        expected.extend((label, points) for points in full_grid_contours(labels, label))
    assert [(p.label, p.points) for p in paths] == expected
