import pytest

from stitchgraph.color_conversion import (
    RGBColor,
    hex_to_lab,
    hex_to_rgb,
    lab_to_rgb,
    normalize_hex,
    rgb_to_hex,
    rgb_to_lab,
)


def test_white_is_l100_neutral():
    lab = rgb_to_lab((255, 255, 255))
    assert lab.L == pytest.approx(100.0, abs=1e-3)
    assert lab.a == pytest.approx(0.0, abs=0.01)
    assert lab.b == pytest.approx(0.0, abs=0.01)


def test_black_is_l0():
    lab = rgb_to_lab(RGBColor(0, 0, 0))
    assert lab.as_tuple() == pytest.approx((0.0, 0.0, 0.0), abs=1e-9)


def test_red_has_positive_a():
    lab = hex_to_lab('#FF0000')
    assert lab.L == pytest.approx(53.24, abs=0.05)
    assert lab.a > 70
    assert lab.b > 60


@pytest.mark.parametrize('rgb', [(0, 0, 0), (255, 255, 255), (206, 25, 56), (19, 67, 141)])
def test_lab_round_trip(rgb):
    assert lab_to_rgb(rgb_to_lab(rgb)).as_tuple() == rgb


def test_hex_parsing():
    assert hex_to_rgb('#ff8000') == RGBColor(255, 128, 0)
    assert hex_to_rgb('00FF00') == RGBColor(0, 255, 0)


@pytest.mark.parametrize('bad', ['#12345', 'zzzzzz', '', '#1234567'])
def test_invalid_hex_raises(bad):
    with pytest.raises(ValueError):
        hex_to_rgb(bad)


def test_hex_formatting():
    assert rgb_to_hex((255, 128, 0)) == '#FF8000'
    assert rgb_to_hex(RGBColor(1, 2, 3)) == '#010203'
    assert normalize_hex(' ff0000 ') == '#FF0000'

