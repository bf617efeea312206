"""
Color Conversion Module

Color-science building blocks for thread matching:
- sRGB <-> CIE L*a*b* (D65 reference white)
- Hex string parsing and formatting

LAB is perceptually uniform: equal distances read as roughly equal
perceived differences, which is what thread matching needs.
"""

from dataclasses import dataclass
from typing import Union


# D65 reference white
WHITE_X = 0.95047
WHITE_Y = 1.00000
WHITE_Z = 1.08883

LAB_EPSILON = 0.008856
LAB_KAPPA = 7.787


@dataclass(frozen=True)
class RGBColor:
    """8-bit sRGB color."""
    r: int
    g: int
    b: int

    def as_tuple(self):
        return (self.r, self.g, self.b)


@dataclass(frozen=True)
class LABColor:
    """CIE L*a*b* color (L: 0-100, a/b roughly -128..127)."""
    L: float
    a: float
    b: float

    def as_tuple(self):
        return (self.L, self.a, self.b)


ColorLike = Union[RGBColor, tuple, list]


def _to_linear(c: float) -> float:
    return ((c + 0.055) / 1.055) ** 2.4 if c > 0.04045 else c / 12.92


def _to_gamma(c: float) -> float:
    return 1.055 * c ** (1 / 2.4) - 0.055 if c > 0.0031308 else 12.92 * c


def _lab_f(t: float) -> float:
    return t ** (1 / 3) if t > LAB_EPSILON else LAB_KAPPA * t + 16 / 116


def _lab_f_inv(t: float) -> float:
    return t ** 3 if t > 0.206897 else (t - 16 / 116) / LAB_KAPPA


def _clamp_byte(value: float) -> int:
    return max(0, min(255, int(round(value))))


def rgb_to_lab(rgb: ColorLike) -> LABColor:
    """
    Convert an sRGB color to CIE LAB.

    Pipeline: normalize to 0-1, undo sRGB gamma, project to XYZ (D65),
    normalize by the white point, apply the LAB transfer function.

    Args:
        rgb: RGBColor or an (r, g, b) tuple with 0-255 channels

    Returns:
        LABColor
    """
    r, g, b = rgb.as_tuple() if isinstance(rgb, RGBColor) else rgb

    # Step 1-2: normalize and linearize
    lr = _to_linear(r / 255)
    lg = _to_linear(g / 255)
    lb = _to_linear(b / 255)

    # Step 3: linear RGB -> XYZ, normalized by white point
    x = (lr * 0.4124564 + lg * 0.3575761 + lb * 0.1804375) / WHITE_X
    y = (lr * 0.2126729 + lg * 0.7151522 + lb * 0.0721750) / WHITE_Y
    z = (lr * 0.0193339 + lg * 0.1191920 + lb * 0.9503041) / WHITE_Z

    # Step 4: XYZ -> LAB
    fx, fy, fz = _lab_f(x), _lab_f(y), _lab_f(z)
    return LABColor(
        L=116 * fy - 16,
        a=500 * (fx - fy),
        b=200 * (fy - fz),
    )


def lab_to_rgb(lab: LABColor) -> RGBColor:
    """
    Convert a CIE LAB color back to 8-bit sRGB.

    Exact inverse of rgb_to_lab up to rounding; out-of-gamut values
    are clamped to 0-255.
    """
    fy = (lab.L + 16) / 116
    fx = lab.a / 500 + fy
    fz = fy - lab.b / 200

    x = _lab_f_inv(fx) * WHITE_X
    y = _lab_f_inv(fy) * WHITE_Y
    z = _lab_f_inv(fz) * WHITE_Z

    r = x * 3.2404542 + y * -1.5371385 + z * -0.4985314
    g = x * -0.9692660 + y * 1.8760108 + z * 0.0415560
    b = x * 0.0556434 + y * -0.2040259 + z * 1.0572252

    return RGBColor(
        r=_clamp_byte(_to_gamma(r) * 255),
        g=_clamp_byte(_to_gamma(g) * 255),
        b=_clamp_byte(_to_gamma(b) * 255),
    )


def normalize_hex(hex_color: str) -> str:
    """Upper-case a hex color and make sure it starts with '#'."""
    cleaned = hex_color.strip().upper()
    return cleaned if cleaned.startswith('#') else f'#{cleaned}'


def hex_to_rgb(hex_color: str) -> RGBColor:
    """
    Parse '#RRGGBB' (or 'RRGGBB'), case-insensitive.

    Raises:
        ValueError: if the string is not a 6-digit hex color
    """
    cleaned = hex_color.strip().lstrip('#')
    if len(cleaned) != 6:
        raise ValueError(f"Invalid hex color: {hex_color!r}")
    try:
        r, g, b = (int(cleaned[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        raise ValueError(f"Invalid hex color: {hex_color!r}") from None
    return RGBColor(r, g, b)


def rgb_to_hex(rgb: ColorLike) -> str:
    """Format an RGB color as upper-case '#RRGGBB'."""
    r, g, b = rgb.as_tuple() if isinstance(rgb, RGBColor) else rgb
    return '#{:02X}{:02X}{:02X}'.format(_clamp_byte(r), _clamp_byte(g), _clamp_byte(b))


def hex_to_lab(hex_color: str) -> LABColor:
    """Convert a hex color directly to LAB."""
    return rgb_to_lab(hex_to_rgb(hex_color))
