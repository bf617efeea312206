"""
Pattern Module

The pixel grid of a cross-stitch design and its thread legend:
- One Stitch per pixel (row-major when built here, but consumers never
  rely on stitch order)
- Canonical color grid for the region builder
- Legend: stitch count and coverage per thread color

A Pattern owns no region or vector state; those are derived artifacts.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image

from .color_conversion import normalize_hex, rgb_to_hex
from .dmc_colors import get_dmc_color
from .matcher import DmcMetadata, PaletteMapping, PaletteMappingEntry

logger = logging.getLogger(__name__)


FABRIC_CODE = 'Fabric'
FABRIC_HEX = '#FFFFFF'

# Chart symbols, assigned per color in palette order
MARKERS = ('S', 'O', 'T', '*', 'D', 'X', '+', '#', '%', '@')


@dataclass
class Stitch:
    """One pixel's resolved thread color."""
    x: int
    y: int
    hex: str                    # '#RRGGBB'
    dmc_code: str               # 'Fabric' for background
    marker: str = ''            # Empty for fabric

    @property
    def is_fabric(self) -> bool:
        return is_fabric_code(self.dmc_code)


@dataclass
class LegendEntry:
    """One row of the thread legend."""
    hex: str
    dmc_code: str
    name: str
    stitch_count: int
    coverage_percent: float
    is_mapped_to_dmc: bool
    raw_hex: str
    mapped_from_count: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'hex': self.hex,
            'dmcCode': self.dmc_code,
            'name': self.name,
            'stitchCount': self.stitch_count,
            'coveragePercent': self.coverage_percent,
            'isMappedToDmc': self.is_mapped_to_dmc,
            'rawHex': self.raw_hex,
            'mappedFromCount': self.mapped_from_count,
        }


def is_fabric_code(code: str) -> bool:
    return code.strip().lower() == FABRIC_CODE.lower()


def color_key(dmc_code: str, hex_color: str) -> str:
    """Region discriminator combining thread code and hex, e.g. '310|#000000'."""
    return f'{dmc_code.strip().upper()}|{hex_color.strip().upper()}'


def split_color_key(key: str) -> Tuple[str, str]:
    code, _, hex_color = key.rpartition('|')
    return code, hex_color


@dataclass
class Pattern:
    """
    A processed image as a grid of stitches.

    Created once per processed image; edits produce a new Pattern
    (see manual_edits).
    """
    stitches: List[Stitch]
    width: int
    height: int
    raw_palette: List[str] = field(default_factory=list)
    mapped_palette: Optional[List[str]] = None
    mapping_table: List[PaletteMappingEntry] = field(default_factory=list)
    dmc_metadata_by_mapped_hex: Dict[str, DmcMetadata] = field(default_factory=dict)

    def __post_init__(self):
        if not self.raw_palette:
            self.raw_palette = unique_palette(self.stitches)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[str],
        colors: Mapping[str, Tuple[str, str]],
        fabric_token: str = '.',
    ) -> 'Pattern':
        """
        Build a pattern from token rows, e.g. ['AA.', 'A.B'].

        Args:
            rows: Equal-length strings, one per grid row
            colors: token -> (dmc_code, hex)
            fabric_token: Token that means fabric
        """
        height = len(rows)
        width = len(rows[0]) if rows else 0
        stitches = []
        for y, row in enumerate(rows):
            for x, token in enumerate(row):
                if token == fabric_token:
                    stitches.append(Stitch(x, y, FABRIC_HEX, FABRIC_CODE, ''))
                else:
                    code, hex_color = colors[token]
                    stitches.append(Stitch(x, y, normalize_hex(hex_color), code, token))
        return cls(stitches, width, height)

    @classmethod
    def from_image(
        cls,
        image: Union[Image.Image, np.ndarray],
        palette_mapping: Optional[PaletteMapping] = None,
        fabric_hex: Optional[str] = None,
    ) -> 'Pattern':
        """
        Build a pattern from an already-quantized image, one stitch per pixel.

        Fully transparent pixels and pixels equal to fabric_hex become fabric.
        Without a palette mapping each distinct color gets a 'RAW-n' code in
        sorted color order; with one, pixels take their mapped DMC thread.

        Args:
            image: Pillow image or (H, W, 3|4) uint8 array
            palette_mapping: Optional result of map_palette_to_dmc
            fabric_hex: Optional color to treat as fabric

        Returns:
            Pattern
        """
        if isinstance(image, Image.Image):
            arr = np.array(image.convert('RGBA'))
        else:
            arr = np.asarray(image, dtype=np.uint8)
            if arr.ndim != 3 or arr.shape[2] not in (3, 4):
                raise ValueError(f"Expected (H, W, 3|4) image array, got shape {arr.shape}")
            if arr.shape[2] == 3:
                alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
                arr = np.concatenate([arr, alpha], axis=2)

        height, width = arr.shape[:2]
        if height == 0 or width == 0:
            return cls([], width, height)

        rgb = arr[..., :3].reshape(-1, 3)
        transparent = arr[..., 3].reshape(-1) == 0

        # Sorted unique colors keep code assignment independent of pixel order
        colors, inverse = np.unique(rgb, axis=0, return_inverse=True)
        inverse = inverse.reshape(-1)
        color_hexes = [rgb_to_hex(tuple(int(c) for c in color)) for color in colors]
        fabric = normalize_hex(fabric_hex) if fabric_hex else None

        resolved: List[Tuple[str, str]] = []
        raw_index = 0
        for hex_color in color_hexes:
            if hex_color == fabric:
                resolved.append((FABRIC_HEX, FABRIC_CODE))
                continue
            if palette_mapping is not None and hex_color in palette_mapping.original_to_mapped:
                mapped_hex = palette_mapping.original_to_mapped[hex_color]
                code = palette_mapping.dmc_metadata_by_mapped_hex[mapped_hex].code
                resolved.append((mapped_hex, code))
            else:
                resolved.append((hex_color, f'RAW-{raw_index}'))
                raw_index += 1

        # Markers follow the final (deduplicated) color order
        marker_by_key: Dict[str, str] = {}
        for hex_color, code in resolved:
            key = color_key(code, hex_color)
            if code != FABRIC_CODE and key not in marker_by_key:
                marker_by_key[key] = MARKERS[len(marker_by_key) % len(MARKERS)]

        stitches = []
        for i, color_idx in enumerate(inverse.tolist()):
            y, x = divmod(i, width)
            if transparent[i]:
                stitches.append(Stitch(x, y, FABRIC_HEX, FABRIC_CODE, ''))
                continue
            hex_color, code = resolved[color_idx]
            marker = '' if code == FABRIC_CODE else marker_by_key[color_key(code, hex_color)]
            stitches.append(Stitch(x, y, hex_color, code, marker))

        pattern = cls(
            stitches,
            width,
            height,
            raw_palette=[h for h in color_hexes if h != fabric],
        )
        if palette_mapping is not None:
            pattern.mapped_palette = list(palette_mapping.mapped_palette)
            pattern.mapping_table = list(palette_mapping.mapping_table)
            pattern.dmc_metadata_by_mapped_hex = dict(palette_mapping.dmc_metadata_by_mapped_hex)

        logger.debug(
            "Pattern from image: %dx%d px, %d colors, mapped=%s",
            width, height, len(color_hexes), palette_mapping is not None,
        )
        return pattern

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def palette_keys(self) -> List[str]:
        """
        Distinct non-fabric color keys, sorted.

        Position in this list is a region's color_index. The order depends
        only on which colors are present, never on stitch order.
        """
        keys = {
            color_key(s.dmc_code, s.hex)
            for s in self.stitches
            if not s.is_fabric and self.in_bounds(s.x, s.y)
        }
        return sorted(keys)

    def color_grid(self) -> Tuple[np.ndarray, List[str]]:
        """
        Color index per pixel in canonical raster order.

        Returns:
            (grid, keys): grid is (height, width) int32 with -1 for fabric,
            keys maps color index -> color key

        If several stitches land on the same cell, the highest color index
        wins, so the result does not depend on stitch order.
        """
        keys = self.palette_keys()
        index_by_key = {key: i for i, key in enumerate(keys)}

        flat_idx = []
        color_idx = []
        for s in self.stitches:
            if s.is_fabric or not self.in_bounds(s.x, s.y):
                continue
            flat_idx.append(s.y * self.width + s.x)
            color_idx.append(index_by_key[color_key(s.dmc_code, s.hex)])

        grid = np.full(self.width * self.height, -1, dtype=np.int32)
        if flat_idx:
            np.maximum.at(grid, np.array(flat_idx), np.array(color_idx, dtype=np.int32))
        return grid.reshape(self.height, self.width), keys

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get_stitch_count(self, dmc_code: str) -> int:
        return sum(1 for s in self.stitches if s.dmc_code == dmc_code)

    def get_legend(self) -> List[LegendEntry]:
        return generate_legend(self)


def unique_palette(stitches: Sequence[Stitch]) -> List[str]:
    """Distinct normalized hexes of non-fabric stitches, sorted."""
    return sorted({normalize_hex(s.hex) for s in stitches if not s.is_fabric})


def generate_legend(pattern: Pattern) -> List[LegendEntry]:
    """
    Build the thread legend for a pattern.

    One entry per distinct (code, hex) color, fabric excluded. Coverage is
    measured against the whole grid (width * height), as a percentage
    rounded to 0.1. Sorted by stitch count (largest first), then hex.

    An entry is mapped to DMC when its hex is one of the pattern's mapped
    thread colors, or when its code is a catalog thread with that hex.
    """
    counts: Dict[Tuple[str, str], int] = {}
    for s in pattern.stitches:
        if s.is_fabric:
            continue
        key = (s.dmc_code.strip(), normalize_hex(s.hex))
        counts[key] = counts.get(key, 0) + 1

    total = pattern.width * pattern.height
    mapped_from: Dict[str, List[str]] = {}
    for entry in pattern.mapping_table:
        mapped_from.setdefault(entry.mapped_hex, []).append(entry.original_hex)

    legend = []
    for (code, hex_color), count in counts.items():
        metadata = pattern.dmc_metadata_by_mapped_hex.get(hex_color)
        catalog = get_dmc_color(code)

        if metadata is not None:
            is_mapped, dmc_code, name = True, metadata.code, metadata.name
        elif catalog is not None and catalog.hex == hex_color:
            is_mapped, dmc_code, name = True, catalog.code, catalog.name
        else:
            is_mapped, dmc_code, name = False, code, 'Quantized color'

        sources = mapped_from.get(hex_color, [])
        legend.append(LegendEntry(
            hex=hex_color,
            dmc_code=dmc_code,
            name=name,
            stitch_count=count,
            coverage_percent=round(count / total * 100, 1) if total else 0.0,
            is_mapped_to_dmc=is_mapped,
            raw_hex=sources[0] if len(sources) == 1 else hex_color,
            mapped_from_count=len(sources) if sources else None,
        ))

    legend.sort(key=lambda e: (-e.stitch_count, e.hex, e.dmc_code))
    return legend

