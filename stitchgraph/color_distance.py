"""
Color Distance Module

Perceptual color-difference (Delta-E) metrics in LAB space:
- CIE76: plain Euclidean distance
- CIE94: textile weighting (kL=2, K1=0.048, K2=0.014)
- CMC l:c: hue-dependent weighting, default 2:1 (perceptibility)

Lower values = more similar colors (0 = identical).
"""

import math
from typing import Callable, Dict, Sequence

from .color_conversion import LABColor


DistanceFunc = Callable[[LABColor, LABColor], float]

# Delta-E thresholds:
# 0-1 not perceptible, 1-2 close observation, 2-10 at a glance
JND_THRESHOLD = 2.3


def delta_e76(lab1: LABColor, lab2: LABColor) -> float:
    """Delta-E CIE76: Euclidean distance in L, a, b."""
    dL = lab1.L - lab2.L
    da = lab1.a - lab2.a
    db = lab1.b - lab2.b
    return math.sqrt(dL * dL + da * da + db * db)


def _chroma_hue_deltas(lab1: LABColor, lab2: LABColor):
    """Return (dL, C1, dC, dH) shared by CIE94 and CMC."""
    dL = lab1.L - lab2.L
    da = lab1.a - lab2.a
    db = lab1.b - lab2.b

    C1 = math.sqrt(lab1.a * lab1.a + lab1.b * lab1.b)
    C2 = math.sqrt(lab2.a * lab2.a + lab2.b * lab2.b)
    dC = C1 - C2

    # Rounding can push dH² slightly negative for near-identical colors
    dH2 = da * da + db * db - dC * dC
    dH = math.sqrt(dH2) if dH2 > 0 else 0.0
    return dL, C1, dC, dH


def delta_e94(lab1: LABColor, lab2: LABColor) -> float:
    """
    Delta-E CIE94 with textile weights.

    Better than CIE76 for thread colors. lab1 is the reference color.
    """
    dL, C1, dC, dH = _chroma_hue_deltas(lab1, lab2)

    kL, kC, kH = 2.0, 1.0, 1.0
    K1, K2 = 0.048, 0.014

    sL = 1.0
    sC = 1.0 + K1 * C1
    sH = 1.0 + K2 * C1

    return math.sqrt(
        (dL / (kL * sL)) ** 2
        + (dC / (kC * sC)) ** 2
        + (dH / (kH * sH)) ** 2
    )


def delta_e_cmc(lab1: LABColor, lab2: LABColor, l: float = 2.0, c: float = 1.0) -> float:
    """
    Delta-E CMC (l:c), Color Measurement Committee formula.

    Args:
        lab1: Reference color (weights are computed from it)
        lab2: Sample color
        l: Lightness weight (2.0 perceptibility, 1.0 acceptability)
        c: Chroma weight

    Returns:
        Distance (0 = identical)
    """
    dL, C1, dC, dH = _chroma_hue_deltas(lab1, lab2)

    H1 = math.degrees(math.atan2(lab1.b, lab1.a))
    if H1 < 0:
        H1 += 360

    C1_4 = C1 ** 4
    F = math.sqrt(C1_4 / (C1_4 + 1900))

    if 164 <= H1 <= 345:
        T = 0.56 + abs(0.2 * math.cos(math.radians(H1 + 168)))
    else:
        T = 0.36 + abs(0.4 * math.cos(math.radians(H1 + 35)))

    sL = 0.511 if lab1.L < 16 else (0.040975 * lab1.L) / (1 + 0.01765 * lab1.L)
    sC = (0.0638 * C1) / (1 + 0.0131 * C1) + 0.638
    sH = sC * (F * T + 1 - F)

    return math.sqrt(
        (dL / (l * sL)) ** 2
        + (dC / (c * sC)) ** 2
        + (dH / sH) ** 2
    )


METRICS: Dict[str, DistanceFunc] = {
    'CIE76': delta_e76,
    'CIE94': delta_e94,
    'CMC': delta_e_cmc,
}


def get_metric(name: str) -> DistanceFunc:
    """Look up a distance function by name ('CIE76', 'CIE94' or 'CMC')."""
    try:
        return METRICS[name.upper()]
    except KeyError:
        raise ValueError(
            f"Unknown color metric {name!r}; expected one of {sorted(METRICS)}"
        ) from None


def are_similar_colors(lab1: LABColor, lab2: LABColor, threshold: float = JND_THRESHOLD) -> bool:
    """True if the CMC distance is within threshold."""
    return delta_e_cmc(lab1, lab2) <= threshold


def find_closest_color_index(
    target: LABColor,
    palette: Sequence[LABColor],
    metric: str = 'CMC',
) -> int:
    """Index of the closest palette color (first one wins ties). Empty palette gives 0."""
    distance = get_metric(metric)
    best_index = 0
    best_distance = math.inf
    for i, color in enumerate(palette):
        d = distance(target, color)
        if d < best_distance:
            best_distance = d
            best_index = i
    return best_index
