"""
Manual Stitch Edits

Per-cell overrides painted on top of a processed pattern:
- 'paint' sets a cell to a thread color
- 'fabric' clears a cell back to fabric

Edits are keyed by cell ('x:y'); the latest edit for a cell wins.
Applying edits returns a new Pattern and never mutates the input.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Union

from .color_conversion import normalize_hex
from .pattern import FABRIC_CODE, FABRIC_HEX, Pattern, Stitch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManualEdit:
    x: int
    y: int
    mode: str = 'paint'                 # 'paint' or 'fabric'
    hex: Optional[str] = None
    dmc_code: Optional[str] = None
    marker: Optional[str] = None


ManualEdits = Dict[str, ManualEdit]


def cell_key(x: int, y: int) -> str:
    return f'{x}:{y}'


def normalize_manual_edit(edit: ManualEdit) -> Optional[ManualEdit]:
    """
    Clean up an edit, or return None if it is unusable.

    Coordinates are floored; negative or non-finite coordinates and paint
    edits without a color are dropped.
    """
    try:
        fx, fy = float(edit.x), float(edit.y)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(fx) and math.isfinite(fy)):
        return None

    x, y = math.floor(fx), math.floor(fy)
    if x < 0 or y < 0:
        return None

    if edit.mode == 'fabric':
        return ManualEdit(x, y, 'fabric')

    if not edit.hex:
        return None
    return ManualEdit(x, y, 'paint', normalize_hex(edit.hex), edit.dmc_code, edit.marker)


def edits_from_list(edits: Iterable[ManualEdit]) -> ManualEdits:
    return merge_manual_edits({}, edits)


def merge_manual_edits(current: ManualEdits, incoming: Iterable[ManualEdit]) -> ManualEdits:
    """Merge incoming edits over current ones, later edits winning per cell."""
    merged = dict(current)
    for edit in incoming:
        normalized = normalize_manual_edit(edit)
        if normalized is None:
            continue
        merged[cell_key(normalized.x, normalized.y)] = normalized
    return merged


def apply_manual_edits(
    pattern: Pattern,
    edits: Union[ManualEdits, List[ManualEdit]],
) -> Pattern:
    """
    Apply edits to a pattern.

    Returns the same Pattern object when no cell actually changes, so
    callers can compare identity to skip a region rebuild. Otherwise the
    palette is extended with any newly painted colors.
    """
    edit_list = list(edits.values()) if isinstance(edits, dict) else list(edits)
    if not edit_list:
        return pattern

    stitches = list(pattern.stitches)
    index_by_cell = {(s.x, s.y): i for i, s in enumerate(stitches)}
    changed = 0

    for edit in edit_list:
        normalized = normalize_manual_edit(edit)
        if normalized is None or not pattern.in_bounds(normalized.x, normalized.y):
            continue

        idx = index_by_cell.get((normalized.x, normalized.y))
        if idx is None:
            continue
        current = stitches[idx]

        if normalized.mode == 'fabric':
            updated = replace(current, dmc_code=FABRIC_CODE, hex=FABRIC_HEX, marker='')
        else:
            updated = replace(
                current,
                dmc_code=normalized.dmc_code if normalized.dmc_code is not None else current.dmc_code,
                marker=normalized.marker if normalized.marker is not None else current.marker,
                hex=normalized.hex,
            )

        if updated == current:
            continue
        stitches[idx] = updated
        changed += 1

    if not changed:
        return pattern

    logger.debug("Applied %d manual edit(s) to %dx%d pattern", changed, pattern.width, pattern.height)

    raw_palette = _append_missing(pattern.raw_palette, stitches)
    mapped_palette = (
        _append_missing(pattern.mapped_palette, stitches)
        if pattern.mapped_palette is not None else None
    )
    return Pattern(
        stitches,
        pattern.width,
        pattern.height,
        raw_palette=raw_palette,
        mapped_palette=mapped_palette,
        mapping_table=list(pattern.mapping_table),
        dmc_metadata_by_mapped_hex=dict(pattern.dmc_metadata_by_mapped_hex),
    )


def _append_missing(base: List[str], stitches: List[Stitch]) -> List[str]:
    palette = [normalize_hex(h) for h in base]
    known = set(palette)
    for s in stitches:
        if s.is_fabric:
            continue
        hex_color = normalize_hex(s.hex)
        if hex_color not in known:
            known.add(hex_color)
            palette.append(hex_color)
    return palette
