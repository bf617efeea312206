"""
Region Graph Module

Builds the stitch-region graph for a pattern:
- 4-connected components of same-color pixels (fabric excluded)
- Stable region ids: by palette color, then raster order of first pixel
- Pixel -> region lookup grid
- Symmetric, sorted adjacency
- Interior label points (safe for rings and other non-convex shapes)
- Boundary segments for outline rendering
- Structural lock hash

The build is a pure function of the pattern's pixel geometry and colors.
Stitch order never affects the result.
"""

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy import ndimage

from .pattern import Pattern, split_color_key

logger = logging.getLogger(__name__)


REGION_GRAPH_DEFAULTS = {
    'slow_build_ms': 18.0,      # Builds slower than this are logged at INFO
}

# 4-connectivity (no diagonals)
FOUR_CONNECTED = np.array([
    [0, 1, 0],
    [1, 1, 1],
    [0, 1, 0],
], dtype=bool)

NO_REGION = 0


@dataclass(frozen=True)
class GridPoint:
    x: int
    y: int


@dataclass
class Region:
    """One maximal 4-connected set of same-color pixels."""
    id: int
    color_index: int                        # Position in the pattern palette
    color_key: str                          # 'CODE|#RRGGBB'
    dmc_code: str
    hex: str
    area: int                               # Pixel count
    bbox: Tuple[int, int, int, int] = (0, 0, 0, 0)  # x0, y0, x1, y1 (inclusive)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'colorIndex': self.color_index,
            'colorKey': self.color_key,
            'dmcCode': self.dmc_code,
            'hex': self.hex,
            'area': self.area,
            'bbox': list(self.bbox),
        }


@dataclass
class BuildArtifact:
    """
    Region graph for one pattern state.

    Recompute whenever the pattern or its edits change; anything keyed to
    region ids is stale once lock_hash changes.
    """
    width: int
    height: int
    pixel_region_id: np.ndarray             # uint32, length width*height, 0 = fabric
    regions: List[Region] = field(default_factory=list)
    regions_by_color: Dict[str, List[int]] = field(default_factory=dict)
    adjacency: Dict[int, List[int]] = field(default_factory=dict)
    label_point_by_region_id: Dict[int, GridPoint] = field(default_factory=dict)
    lock_hash: str = ''
    outline_segments_by_region_id: Dict[int, np.ndarray] = field(default_factory=dict)
    all_boundary_segments: np.ndarray = field(
        default_factory=lambda: np.zeros((0, 4), dtype=np.int32)
    )

    def region_at(self, x: int, y: int) -> int:
        """Region id under a pixel (0 for fabric or out of bounds)."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            return NO_REGION
        return int(self.pixel_region_id[y * self.width + x])

    def get_region(self, region_id: int) -> Optional[Region]:
        if 1 <= region_id <= len(self.regions):
            return self.regions[region_id - 1]
        return None

    def to_dict(self, include_pixels: bool = False) -> dict:
        """JSON-friendly view (pixel grid and segments only on request)."""
        data = {
            'width': self.width,
            'height': self.height,
            'lockHash': self.lock_hash,
            'regions': [r.to_dict() for r in self.regions],
            'regionsByColor': {k: list(v) for k, v in self.regions_by_color.items()},
            'adjacency': {str(k): list(v) for k, v in self.adjacency.items()},
            'labelPointByRegionId': {
                str(k): {'x': p.x, 'y': p.y}
                for k, p in self.label_point_by_region_id.items()
            },
        }
        if include_pixels:
            data['pixelRegionId'] = self.pixel_region_id.tolist()
            data['outlineSegmentsByRegionId'] = {
                str(k): v.tolist() for k, v in self.outline_segments_by_region_id.items()
            }
        return data


def build_region_graph(pattern: Pattern) -> BuildArtifact:
    """
    Build the region graph for a pattern.

    Pipeline:
    1. Color grid in canonical raster order
    2. 4-connected components per palette color
    3. Order by (color index, raster index of first pixel), ids 1..N
    4. Pixel -> region id lookup grid
    5. Adjacency from horizontal and vertical neighbor pairs
    6. Interior label point per region
    7. Boundary segments and lock hash

    Never raises for a well-formed pattern; an all-fabric or empty grid
    yields zero regions.

    Args:
        pattern: Source pattern

    Returns:
        BuildArtifact
    """
    started = time.perf_counter()
    width, height = pattern.width, pattern.height

    # Step 1: snapshot the colors as a canonical grid
    color_grid, palette_keys = pattern.color_grid()
    grid = np.zeros((height, width), dtype=np.uint32)

    regions: List[Region] = []
    regions_by_color: Dict[str, List[int]] = {}

    # Steps 2-4: components per color, already in final id order
    for color_index, key in enumerate(palette_keys):
        mask = color_grid == color_index
        labeled, count = ndimage.label(mask, structure=FOUR_CONNECTED)
        if count == 0:
            continue

        order = _components_in_raster_order(labeled, count)
        areas = np.bincount(labeled.ravel(), minlength=count + 1)
        slices = ndimage.find_objects(labeled)

        # Remap component labels to final region ids
        first_id = len(regions) + 1
        remap = np.zeros(count + 1, dtype=np.uint32)
        remap[order] = np.arange(first_id, first_id + count, dtype=np.uint32)
        grid[mask] = remap[labeled[mask]]

        dmc_code, hex_color = split_color_key(key)
        ids = []
        for component in order.tolist():
            rows, cols = slices[component - 1]
            region = Region(
                id=len(regions) + 1,
                color_index=color_index,
                color_key=key,
                dmc_code=dmc_code,
                hex=hex_color,
                area=int(areas[component]),
                bbox=(cols.start, rows.start, cols.stop - 1, rows.stop - 1),
            )
            regions.append(region)
            ids.append(region.id)
        regions_by_color[key] = ids

    # Step 5: adjacency
    adjacency = compute_adjacency(grid, len(regions))

    # Step 6: label points
    label_points = compute_label_points(grid, len(regions))

    # Step 7: outlines and hash
    outline_segments, all_segments = compute_boundary_segments(grid, len(regions))

    artifact = BuildArtifact(
        width=width,
        height=height,
        pixel_region_id=grid.reshape(-1),
        regions=regions,
        regions_by_color=regions_by_color,
        adjacency=adjacency,
        label_point_by_region_id=label_points,
        outline_segments_by_region_id=outline_segments,
        all_boundary_segments=all_segments,
    )
    artifact.lock_hash = compute_lock_hash(artifact)

    took_ms = (time.perf_counter() - started) * 1000
    logger.debug(
        "Region graph: %dx%d px, %d colors, %d regions, hash %s (%.1f ms)",
        width, height, len(palette_keys), len(regions), artifact.lock_hash, took_ms,
    )
    if took_ms > REGION_GRAPH_DEFAULTS['slow_build_ms']:
        logger.info(
            "Slow region graph build: %.1f ms for %dx%d px, %d regions",
            took_ms, width, height, len(regions),
        )
    return artifact


def _components_in_raster_order(labeled: np.ndarray, count: int) -> np.ndarray:
    """Component labels (1..count) sorted by the raster index of their first pixel."""
    flat = labeled.ravel()
    members = np.flatnonzero(flat)
    first_pixel = np.full(count + 1, flat.size, dtype=np.int64)
    np.minimum.at(first_pixel, flat[members], members)
    return np.argsort(first_pixel[1:], kind='stable') + 1


def compute_adjacency(grid: np.ndarray, region_count: int) -> Dict[int, List[int]]:
    """
    Undirected region adjacency over 4-neighbor pixel pairs.

    Every region id gets an entry; neighbor lists are sorted ascending
    with no duplicates. Fabric (id 0) is never a neighbor.
    """
    adjacency: Dict[int, List[int]] = {rid: [] for rid in range(1, region_count + 1)}

    pairs = []
    for a, b in ((grid[:, :-1], grid[:, 1:]), (grid[:-1, :], grid[1:, :])):
        touching = (a != b) & (a != NO_REGION) & (b != NO_REGION)
        pairs.append(np.stack([a[touching], b[touching]], axis=1))

    edges = np.concatenate(pairs).astype(np.int64)
    if edges.size == 0:
        return adjacency

    # Both directions, then unique rows: sorted by (region, neighbor)
    edges = np.unique(np.concatenate([edges, edges[:, ::-1]]), axis=0)
    for region_id, neighbor in edges.tolist():
        adjacency[region_id].append(neighbor)
    return adjacency


def compute_label_points(grid: np.ndarray, region_count: int) -> Dict[int, GridPoint]:
    """
    Pick an interior pixel of every region to anchor its on-canvas label.

    One distance transform covers the whole grid: pixels whose four
    neighbors all share their id are interior, every other member pixel
    (including those on the grid edge) is a boundary pixel at depth 1.
    Each region's candidate is its deepest pixel, ties going to the first
    pixel in raster order. A candidate that is somehow not a member falls
    back to the region's first pixel.
    """
    if region_count == 0:
        return {}

    padded = np.pad(grid, 1, constant_values=NO_REGION)
    interior = (
        (grid != NO_REGION)
        & (padded[:-2, 1:-1] == grid) & (padded[2:, 1:-1] == grid)
        & (padded[1:-1, :-2] == grid) & (padded[1:-1, 2:] == grid)
    )
    depth = (ndimage.distance_transform_edt(interior) + 1).ravel()

    flat = grid.ravel().astype(np.int64)
    members = np.flatnonzero(flat)
    ids = flat[members]

    # Sort by (region id, depth descending, raster index); first row per id wins
    order = np.lexsort((members, -depth[members], ids))
    sorted_ids = ids[order]
    heads = np.flatnonzero(np.concatenate([[True], sorted_ids[1:] != sorted_ids[:-1]]))
    best = dict(zip(sorted_ids[heads].tolist(), members[order[heads]].tolist()))

    first_pixel = np.full(region_count + 1, flat.size, dtype=np.int64)
    np.minimum.at(first_pixel, ids, members)

    width = grid.shape[1]
    points: Dict[int, GridPoint] = {}
    for region_id in range(1, region_count + 1):
        index = best.get(region_id)
        if index is None or flat[index] != region_id:
            logger.debug("Label point for region %d fell outside; using first pixel", region_id)
            index = int(first_pixel[region_id])
        y, x = divmod(index, width)
        points[region_id] = GridPoint(x, y)
    return points


def compute_boundary_segments(
    grid: np.ndarray,
    region_count: int,
) -> Tuple[Dict[int, np.ndarray], np.ndarray]:
    """
    Unit grid-edge segments (x0, y0, x1, y1) along region boundaries.

    Returns:
        (per_region, all_segments): per_region maps each region id to the
        edges of its pixels that face a different id or the grid border;
        all_segments lists every such edge once
    """
    height, width = grid.shape
    padded = np.pad(grid.astype(np.int64), 1, constant_values=-1)
    inner = padded[1:-1, 1:-1]
    ys, xs = np.mgrid[0:height, 0:width]

    # (neighbor view, segment endpoints relative to the pixel)
    sides = (
        (padded[:-2, 1:-1], (0, 0, 1, 0)),      # top
        (padded[1:-1, 2:], (1, 0, 1, 1)),       # right
        (padded[2:, 1:-1], (0, 1, 1, 1)),       # bottom
        (padded[1:-1, :-2], (0, 0, 0, 1)),      # left
    )

    owner_parts = []
    segment_parts = []
    shared_parts = []
    for neighbor, (dx0, dy0, dx1, dy1) in sides:
        exposed = (inner != neighbor) & (inner != NO_REGION)
        segments = np.stack([
            xs[exposed] + dx0, ys[exposed] + dy0,
            xs[exposed] + dx1, ys[exposed] + dy1,
        ], axis=1)
        owner_parts.append(inner[exposed])
        segment_parts.append(segments)
        # Count an edge once: the higher id owns edges shared by two regions
        shared_parts.append((neighbor[exposed] < inner[exposed]))

    owners = np.concatenate(owner_parts)
    segments = np.concatenate(segment_parts).astype(np.int32).reshape(-1, 4)
    once = np.concatenate(shared_parts)

    order = np.argsort(owners, kind='stable')
    owners, segments, once = owners[order], segments[order], once[order]

    per_region: Dict[int, np.ndarray] = {}
    bounds = np.searchsorted(owners, np.arange(1, region_count + 2))
    for rid in range(1, region_count + 1):
        per_region[rid] = segments[bounds[rid - 1]:bounds[rid]]

    return per_region, segments[once]


def compute_lock_hash(artifact: BuildArtifact) -> str:
    """
    Structural fingerprint of a build artifact.

    SHA-1 over dimensions, each region's (id, color key, area), the raw
    lookup grid (uint32 little-endian) and the adjacency lists. Equal
    structures hash equally regardless of how the pattern was ordered;
    any change of color, geometry or size changes the hash.
    """
    digest = hashlib.sha1(f'{artifact.width}x{artifact.height};'.encode())
    digest.update(''.join(
        f'r{region.id}:{region.color_key}:{region.area};' for region in artifact.regions
    ).encode())
    digest.update(np.ascontiguousarray(artifact.pixel_region_id, dtype='<u4').tobytes())
    digest.update(''.join(
        f'a{region_id}:{",".join(map(str, artifact.adjacency[region_id]))};'
        for region_id in sorted(artifact.adjacency)
    ).encode())
    return digest.hexdigest()
