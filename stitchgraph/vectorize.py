"""
Vectorization Module

Turns a label map into closed polygon outlines:
- Binary mask per label (with optional manual fabric override)
- Boundary pixel detection (4-neighborhood)
- Moore-neighbor contour tracing (8-connected)
- Douglas-Peucker simplification
- Corner-cutting smoothing

One Path per traced contour: a label owns as many paths as it has
islands and holes.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy import ndimage

from .label_map import as_label_grid

logger = logging.getLogger(__name__)


Point = Tuple[float, float]

VECTORIZE_DEFAULTS = {
    'simplify': 0.5,        # Douglas-Peucker epsilon (pixels)
    'smooth': 2,            # Corner-cutting iterations
    'min_contour_points': 3,
}

# Moore neighborhood, clockwise from north (y grows downward)
DIRECTIONS = (
    (0, -1), (1, -1), (1, 0), (1, 1),
    (0, 1), (-1, 1), (-1, 0), (-1, -1),
)


@dataclass
class Path:
    """One closed outline of a label."""
    points: List[Point]
    label: int
    is_fabric: bool

    def to_dict(self) -> dict:
        return {
            'points': [[x, y] for x, y in self.points],
            'label': self.label,
            'isFabric': self.is_fabric,
        }


@dataclass
class VectorizeOptions:
    simplify: float = VECTORIZE_DEFAULTS['simplify']
    smooth: int = VECTORIZE_DEFAULTS['smooth']
    manual_mask: Optional[Sequence[int]] = field(default=None, repr=False)  # 0 = force fabric


def vectorize(
    labels: Sequence[int],
    width: int,
    height: int,
    fabric_labels: Iterable[int] = (),
    options: Optional[VectorizeOptions] = None,
) -> List[Path]:
    """
    Extract simplified, smoothed outlines from a label map.

    Args:
        labels: Flat row-major (or 2-D) grid of non-negative integer labels
        width, height: Grid size
        fabric_labels: Labels that count as fabric/background
        options: Simplify epsilon, smoothing iterations, manual mask

    Returns:
        Paths in ascending label order, then contour discovery order
    """
    options = options or VectorizeOptions()
    raw_paths = vectorize_label_map(labels, width, height, fabric_labels, options.manual_mask)
    return [
        Path(
            points=smooth_path(simplify_path(path.points, options.simplify), options.smooth),
            label=path.label,
            is_fabric=path.is_fabric,
        )
        for path in raw_paths
    ]


def vectorize_label_map(
    labels: Sequence[int],
    width: int,
    height: int,
    fabric_labels: Iterable[int] = (),
    manual_mask: Optional[Sequence[int]] = None,
) -> List[Path]:
    """
    Trace raw pixel contours for every label present in the map.

    A pixel belongs to label l's mask when its label is l and the manual
    mask (if any) is nonzero there.

    Raises:
        ValueError: labels or manual_mask do not match width * height,
            or labels contain negative values
    """
    grid = as_label_grid(labels, width, height)
    allowed = None
    if manual_mask is not None:
        allowed = as_label_grid(manual_mask, width, height) != 0
    if grid.size and grid.min() < 0:
        raise ValueError("Label map values must be non-negative")

    fabric = set(int(l) for l in fabric_labels)
    max_iterations = width * height
    paths: List[Path] = []

    # Work inside each label's bounding box; outside it nothing is foreground
    slices = ndimage.find_objects(grid + 1) if grid.size else []
    for label in np.unique(grid).tolist():
        window = slices[label]
        if window is None:
            continue
        mask = grid[window] == label
        if allowed is not None:
            mask &= allowed[window]
        if not mask.any():
            continue

        ox, oy = window[1].start, window[0].start
        for contour in find_contours(mask, max_iterations):
            paths.append(Path(
                points=[(float(x + ox), float(y + oy)) for x, y in contour],
                label=label,
                is_fabric=label in fabric,
            ))

    logger.debug("Vectorized %dx%d label map into %d contours", width, height, len(paths))
    return paths


def boundary_mask(mask: np.ndarray) -> np.ndarray:
    """Foreground pixels touching the grid edge or a 4-neighbor background pixel."""
    padded = np.pad(mask, 1, constant_values=False)
    interior = (
        padded[:-2, 1:-1] & padded[2:, 1:-1]
        & padded[1:-1, :-2] & padded[1:-1, 2:]
    )
    return mask & ~interior


def find_contours(mask: np.ndarray, max_iterations: Optional[int] = None) -> List[List[Tuple[int, int]]]:
    """
    Trace every contour of a binary mask.

    Boundary pixels are visited in raster order; each unvisited one starts
    a trace. Pixels of a kept contour are marked visited so the same
    contour is not traced twice. Contours shorter than 3 points are dropped.
    """
    height, width = mask.shape
    if max_iterations is None:
        max_iterations = width * height
    cells = mask.tolist()
    visited = np.zeros(mask.shape, dtype=bool)
    contours = []

    ys, xs = np.nonzero(boundary_mask(mask))
    for y, x in zip(ys.tolist(), xs.tolist()):
        if visited[y, x]:
            continue
        contour = _trace(cells, width, height, x, y, max_iterations)
        if len(contour) < VECTORIZE_DEFAULTS['min_contour_points']:
            continue
        contours.append(contour)
        for px, py in contour:
            visited[py, px] = True
    return contours


def trace_moore_contour(
    mask: np.ndarray,
    start_x: int,
    start_y: int,
    max_iterations: Optional[int] = None,
) -> List[Tuple[int, int]]:
    """
    Moore-neighbor trace of the boundary through (start_x, start_y).

    Stops when the walk returns to the start pixel or after max_iterations
    steps (default width * height).
    """
    height, width = mask.shape
    if max_iterations is None:
        max_iterations = width * height
    return _trace(mask.tolist(), width, height, start_x, start_y, max_iterations)


def _trace(cells, width, height, start_x, start_y, max_iterations):
    points = []
    cx, cy = start_x, start_y
    px, py = start_x - 1, start_y       # Entered from the west

    iterations = 0
    while iterations < max_iterations:
        points.append((cx, cy))

        # Direction pointing back at the previous pixel
        back = 0
        for i, (dx, dy) in enumerate(DIRECTIONS):
            if cx + dx == px and cy + dy == py:
                back = i
                break

        found = False
        for step in range(1, 9):
            d = (back + step) % 8
            nx, ny = cx + DIRECTIONS[d][0], cy + DIRECTIONS[d][1]
            if 0 <= nx < width and 0 <= ny < height and cells[ny][nx]:
                bx, by = DIRECTIONS[(d + 7) % 8]
                px, py = cx + bx, cy + by
                cx, cy = nx, ny
                found = True
                break

        if not found or (cx == start_x and cy == start_y):
            break
        iterations += 1

    return points


def perpendicular_distance(p: Point, line_start: Point, line_end: Point) -> float:
    """Distance from p to the line through line_start/line_end (point distance if they coincide)."""
    dx = line_end[0] - line_start[0]
    dy = line_end[1] - line_start[1]
    mag = math.hypot(dx, dy)
    if mag == 0:
        return math.hypot(p[0] - line_start[0], p[1] - line_start[1])
    return abs(
        dy * p[0] - dx * p[1] + line_end[0] * line_start[1] - line_end[1] * line_start[0]
    ) / mag


def simplify_path(points: Sequence[Point], epsilon: float) -> List[Point]:
    """
    Douglas-Peucker simplification.

    Iterative over an explicit stack of (start, end) index ranges, so
    stack depth does not grow with contour length. Paths of 1-2 points
    come back unchanged.
    """
    n = len(points)
    if n <= 2:
        return list(points)

    keep = [False] * n
    keep[0] = keep[-1] = True
    stack = [(0, n - 1)]

    while stack:
        start, end = stack.pop()
        max_dist = 0.0
        index = start
        for i in range(start + 1, end):
            dist = perpendicular_distance(points[i], points[start], points[end])
            if dist > max_dist:
                index = i
                max_dist = dist

        if max_dist > epsilon and index > start:
            keep[index] = True
            stack.append((index, end))
            stack.append((start, index))

    return [p for p, kept in zip(points, keep) if kept]


def smooth_path(points: Sequence[Point], iterations: int) -> List[Point]:
    """
    Chaikin corner cutting on a closed polygon.

    Each edge (p0, p1) becomes the points at 1/4 and 3/4 along it; the last
    point connects back to the first. Stops early below 3 points.
    """
    current = list(points)
    for _ in range(iterations):
        if len(current) < 3:
            return current
        smoothed = []
        for j, (x0, y0) in enumerate(current):
            x1, y1 = current[(j + 1) % len(current)]
            smoothed.append((0.75 * x0 + 0.25 * x1, 0.75 * y0 + 0.25 * y1))
            smoothed.append((0.25 * x0 + 0.75 * x1, 0.25 * y0 + 0.75 * y1))
        current = smoothed
    return current


def paths_to_svg(
    paths: Sequence[Path],
    width: int,
    height: int,
    colors: Mapping[int, str],
    include_fabric: bool = False,
    default_color: str = '#000000',
) -> str:
    """
    Render paths as a standalone SVG document.

    Potrace-style flat output: one filled <path> per contour, pixel
    coordinates, viewBox matching the label map.
    """
    paths_xml = []
    count_by_label = {}
    for path in paths:
        if path.is_fabric and not include_fabric:
            continue
        if len(path.points) < 3:
            continue
        j = count_by_label.get(path.label, 0)
        count_by_label[path.label] = j + 1

        first, rest = path.points[0], path.points[1:]
        d = f'M {first[0]:.2f} {first[1]:.2f} ' + ' '.join(
            f'L {x:.2f} {y:.2f}' for x, y in rest
        ) + ' Z'
        color = colors.get(path.label, default_color)
        paths_xml.append(
            f'  <path id="label_{path.label}_{j}" '
            f'style="fill:{color};stroke:none;fill-opacity:1" '
            f'd="{d}" />'
        )

    return f"""<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg"
     width="{width}"
     height="{height}"
     viewBox="0 0 {width} {height}">
{chr(10).join(paths_xml)}
</svg>"""
