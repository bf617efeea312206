# StitchGraph: cross-stitch pattern analysis
# Thread color matching, region graph building and contour vectorization

from .color_conversion import LABColor, RGBColor, hex_to_lab, hex_to_rgb, lab_to_rgb, rgb_to_hex, rgb_to_lab
from .color_distance import delta_e76, delta_e94, delta_e_cmc, are_similar_colors, find_closest_color_index
from .dmc_colors import DMC_CATALOG, DMCColor, get_dmc_color, get_dmc_colors_by_family, search_dmc_colors
from .errors import EmptyPaletteError, StitchGraphError
from .matcher import (
    create_reduced_dmc_palette,
    get_closest_dmc_colors,
    map_palette_to_dmc,
    match_to_dmc,
    match_to_dmc_preserve_value,
)
from .pattern import LegendEntry, Pattern, Stitch, generate_legend
from .manual_edits import ManualEdit, apply_manual_edits
from .region_graph import BuildArtifact, Region, build_region_graph, compute_label_points, compute_lock_hash
from .label_map import find_connected_components
from .vectorize import Path, VectorizeOptions, paths_to_svg, vectorize, vectorize_label_map

__all__ = [
    'LABColor',
    'RGBColor',
    'hex_to_lab',
    'hex_to_rgb',
    'lab_to_rgb',
    'rgb_to_hex',
    'rgb_to_lab',
    'delta_e76',
    'delta_e94',
    'delta_e_cmc',
    'are_similar_colors',
    'find_closest_color_index',
    'DMC_CATALOG',
    'DMCColor',
    'get_dmc_color',
    'get_dmc_colors_by_family',
    'search_dmc_colors',
    'EmptyPaletteError',
    'StitchGraphError',
    'create_reduced_dmc_palette',
    'get_closest_dmc_colors',
    'map_palette_to_dmc',
    'match_to_dmc',
    'match_to_dmc_preserve_value',
    'LegendEntry',
    'Pattern',
    'Stitch',
    'generate_legend',
    'ManualEdit',
    'apply_manual_edits',
    'BuildArtifact',
    'Region',
    'build_region_graph',
    'compute_label_points',
    'compute_lock_hash',
    'find_connected_components',
    'Path',
    'VectorizeOptions',
    'paths_to_svg',
    'vectorize',
    'vectorize_label_map',
]
