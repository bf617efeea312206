"""
Thread Matching Module

Maps arbitrary colors onto the DMC thread catalog:
- Nearest-thread matching with a selectable Delta-E metric
- Value-preserving matching for palette-level mapping
- Whole-palette mapping with dedup and a mapping table
- Top-N suggestions
- Greedy farthest-point palette reduction

All functions are linear scans over the (optionally filtered) catalog.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

from .color_conversion import LABColor, RGBColor, hex_to_lab, normalize_hex, rgb_to_lab
from .color_distance import JND_THRESHOLD, delta_e_cmc, get_metric
from .dmc_colors import DMC_CATALOG, DMCColor, get_dmc_color
from .errors import EmptyPaletteError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValueWeights:
    """Weights for the value-preserving cost wL·|ΔL| + wC·√(Δa²+Δb²)."""
    wL: float = 2.0
    wC: float = 1.0


DEFAULT_VALUE_WEIGHTS = ValueWeights()

# Seeds for palette reduction: white, black, red, green, blue, yellow
REDUCED_PALETTE_SEEDS = ('White', '310', '666', '700', '797', '973')


@dataclass(frozen=True)
class DmcMetadata:
    code: str
    name: str
    hex: str


@dataclass(frozen=True)
class PaletteMappingEntry:
    original_hex: str
    mapped_hex: str
    dmc: DmcMetadata


@dataclass
class PaletteMapping:
    """Result of mapping a quantized palette onto DMC threads."""
    mapped_palette: List[str] = field(default_factory=list)      # Sorted by L ascending
    dmc_metadata_by_mapped_hex: Dict[str, DmcMetadata] = field(default_factory=dict)
    mapping_table: List[PaletteMappingEntry] = field(default_factory=list)
    original_to_mapped: Dict[str, str] = field(default_factory=dict)


def available_threads(excluded_codes: Iterable[str] = ()) -> Tuple[DMCColor, ...]:
    """Catalog minus excluded codes, in catalog order."""
    excluded = set(excluded_codes)
    if not excluded:
        return DMC_CATALOG
    return tuple(dmc for dmc in DMC_CATALOG if dmc.code not in excluded)


def _require_threads(excluded_codes: Iterable[str]) -> Tuple[DMCColor, ...]:
    excluded = set(excluded_codes)
    palette = available_threads(excluded)
    if not palette:
        raise EmptyPaletteError(len(excluded))
    return palette


def match_to_dmc(
    color: LABColor,
    excluded_codes: Iterable[str] = (),
    metric: str = 'CMC',
) -> DMCColor:
    """
    Match a LAB color to the closest DMC thread.

    Args:
        color: LAB color to match
        excluded_codes: DMC codes that must not be returned
        metric: 'CIE76', 'CIE94' or 'CMC'

    Returns:
        Closest DMCColor (earliest catalog entry on ties)

    Raises:
        EmptyPaletteError: every thread is excluded
    """
    palette = _require_threads(excluded_codes)
    distance = get_metric(metric)

    best = palette[0]
    best_distance = math.inf
    for dmc in palette:
        d = distance(color, dmc.lab)
        if d < best_distance:
            best_distance = d
            best = dmc
    return best


def match_rgb_to_dmc(
    rgb: RGBColor,
    excluded_codes: Iterable[str] = (),
    metric: str = 'CMC',
) -> DMCColor:
    """Convenience wrapper: convert RGB to LAB, then match_to_dmc."""
    return match_to_dmc(rgb_to_lab(rgb), excluded_codes, metric)


def batch_match_to_dmc(
    colors: Sequence[LABColor],
    excluded_codes: Iterable[str] = (),
    metric: str = 'CMC',
) -> List[DMCColor]:
    """Match several LAB colors at once."""
    excluded = tuple(excluded_codes)
    return [match_to_dmc(color, excluded, metric) for color in colors]


def value_preserving_cost(color: LABColor, target: LABColor, weights: ValueWeights) -> float:
    dL = abs(color.L - target.L)
    da = color.a - target.a
    db = color.b - target.b
    return weights.wL * dL + weights.wC * math.sqrt(da * da + db * db)


def match_to_dmc_preserve_value(
    color: LABColor,
    excluded_codes: Iterable[str] = (),
    weights: ValueWeights = DEFAULT_VALUE_WEIGHTS,
) -> DMCColor:
    """
    Match a LAB color to DMC with extra weight on preserving lightness.

    Cost = wL * |ΔL| + wC * sqrt(Δa² + Δb²). Used when mapping a whole
    palette, where keeping the value structure of the image matters more
    than exact hue.

    Raises:
        EmptyPaletteError: every thread is excluded
    """
    palette = _require_threads(excluded_codes)

    best = palette[0]
    best_cost = math.inf
    for dmc in palette:
        cost = value_preserving_cost(color, dmc.lab, weights)
        if cost < best_cost:
            best_cost = cost
            best = dmc
    return best


def map_palette_to_dmc(
    palette: Sequence[str],
    weights: ValueWeights = DEFAULT_VALUE_WEIGHTS,
) -> PaletteMapping:
    """
    Map a quantized palette (hex strings) onto DMC threads.

    Input hexes are normalized and deduplicated in first-seen order. Two
    source colors may land on the same thread; the mapped palette keeps
    each thread once, sorted by lightness (darkest first).
    """
    unique_palette = list(dict.fromkeys(normalize_hex(h) for h in palette))
    result = PaletteMapping()

    for original_hex in unique_palette:
        dmc = match_to_dmc_preserve_value(hex_to_lab(original_hex), (), weights)
        mapped_hex = normalize_hex(dmc.hex)
        metadata = DmcMetadata(code=dmc.code, name=dmc.name, hex=mapped_hex)

        result.original_to_mapped[original_hex] = mapped_hex
        result.dmc_metadata_by_mapped_hex[mapped_hex] = metadata
        result.mapping_table.append(PaletteMappingEntry(original_hex, mapped_hex, metadata))
        if mapped_hex not in result.mapped_palette:
            result.mapped_palette.append(mapped_hex)

    result.mapped_palette.sort(key=lambda h: hex_to_lab(h).L)

    logger.debug(
        "Mapped %d palette colors onto %d DMC threads",
        len(unique_palette), len(result.mapped_palette),
    )
    return result


def get_closest_dmc_colors(
    color: LABColor,
    count: int = 5,
    excluded_codes: Iterable[str] = (),
    metric: str = 'CMC',
) -> List[Tuple[DMCColor, float]]:
    """
    Get the N closest threads to a color, nearest first.

    Returns (thread, distance) pairs. An empty list when everything is
    excluded or count <= 0.
    """
    if count <= 0:
        return []
    distance = get_metric(metric)
    scored = [(dmc, distance(color, dmc.lab)) for dmc in available_threads(excluded_codes)]
    # sort() is stable, so catalog order breaks distance ties
    scored.sort(key=lambda pair: pair[1])
    return scored[:count]


def is_close_to_dmc(color: LABColor, dmc_code: str, threshold: float = JND_THRESHOLD) -> bool:
    """True if color is within threshold (CMC) of the given thread."""
    dmc = get_dmc_color(dmc_code)
    if dmc is None:
        return False
    return delta_e_cmc(color, dmc.lab) <= threshold


def create_reduced_dmc_palette(target_count: int) -> List[DMCColor]:
    """
    Select target_count threads that cover the color space well.

    Greedy farthest-point selection:
    1. Seed with white, black, red, green, blue and yellow
    2. Repeatedly add the remaining thread whose minimum CMC distance to
       the selection is largest (earliest catalog entry on ties)
    3. Stop at target_count or when the catalog runs out

    Args:
        target_count: Desired palette size

    Returns:
        Selected threads, seeds first
    """
    if target_count >= len(DMC_CATALOG):
        return list(DMC_CATALOG)
    if target_count <= 0:
        return []

    selected: List[DMCColor] = []
    for code in REDUCED_PALETTE_SEEDS:
        dmc = get_dmc_color(code)
        if dmc is not None:
            selected.append(dmc)
    selected = selected[:target_count]

    remaining = [dmc for dmc in DMC_CATALOG if dmc not in selected]

    # Running minimum distance from each candidate to the selection
    min_distances = [
        min((delta_e_cmc(candidate.lab, sel.lab) for sel in selected), default=math.inf)
        for candidate in remaining
    ]

    while len(selected) < target_count and remaining:
        best_idx = max(range(len(remaining)), key=lambda i: (min_distances[i], -i))
        best = remaining.pop(best_idx)
        min_distances.pop(best_idx)
        selected.append(best)

        for i, candidate in enumerate(remaining):
            d = delta_e_cmc(candidate.lab, best.lab)
            if d < min_distances[i]:
                min_distances[i] = d

    return selected
