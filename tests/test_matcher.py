import pytest

from stitchgraph.color_conversion import hex_to_lab
from stitchgraph.dmc_colors import (
    DMC_CATALOG,
    DMC_INDEX_BY_CODE,
    FAMILY_KEYWORDS,
    get_dmc_color,
    get_dmc_colors_by_family,
    search_dmc_colors,
)
from stitchgraph.errors import EmptyPaletteError, StitchGraphError
from stitchgraph.matcher import (
    REDUCED_PALETTE_SEEDS,
    batch_match_to_dmc,
    create_reduced_dmc_palette,
    get_closest_dmc_colors,
    is_close_to_dmc,
    map_palette_to_dmc,
    match_rgb_to_dmc,
    match_to_dmc,
    match_to_dmc_preserve_value,
)

ALL_CODES = [dmc.code for dmc in DMC_CATALOG]


def test_exact_catalog_color_matches_itself():
    assert match_to_dmc(hex_to_lab('#000000')).code == '310'
    assert match_to_dmc(hex_to_lab('#FFFFFF')).code == 'B5200'


@pytest.mark.parametrize('metric', ['CIE76', 'CIE94', 'CMC'])
def test_excluded_codes_are_never_returned(metric):
    black = hex_to_lab('#000000')
    excluded = ['310', '3371', '939']
    assert match_to_dmc(black, excluded, metric).code not in excluded


def test_all_excluded_raises():
    with pytest.raises(EmptyPaletteError) as info:
        match_to_dmc(hex_to_lab('#336699'), ALL_CODES)
    assert info.value.excluded_count == len(set(ALL_CODES))
    assert isinstance(info.value, ValueError)
    assert isinstance(info.value, StitchGraphError)

    with pytest.raises(EmptyPaletteError):
        match_to_dmc_preserve_value(hex_to_lab('#336699'), ALL_CODES)


def test_rgb_wrapper():
    assert match_rgb_to_dmc((0, 0, 0)).code == '310'


def test_closest_colors_sorted_nearest_first():
    matches = get_closest_dmc_colors(hex_to_lab('#000000'), count=4)
    assert len(matches) == 4
    assert matches[0][0].code == '310'
    assert matches[0][1] == pytest.approx(0.0)
    distances = [d for _, d in matches]
    assert distances == sorted(distances)


def test_closest_colors_edge_cases():
    black = hex_to_lab('#000000')
    assert get_closest_dmc_colors(black, count=0) == []
    assert get_closest_dmc_colors(black, count=3, excluded_codes=ALL_CODES) == []
    assert '310' not in [d.code for d, _ in get_closest_dmc_colors(black, 5, ['310'])]


def test_preserve_value_keeps_lightness_close():
    color = hex_to_lab('#808080')
    dmc = match_to_dmc_preserve_value(color)
    assert abs(dmc.lab.L - color.L) < 5


def test_map_palette_dedups_and_sorts_by_lightness():
    mapping = map_palette_to_dmc(['#ffffff', '#000000', '#FFFFFF'])
    assert len(mapping.mapping_table) == 2
    assert mapping.mapped_palette == ['#000000', '#FFFFFF']
    assert mapping.original_to_mapped == {'#FFFFFF': '#FFFFFF', '#000000': '#000000'}
    assert mapping.dmc_metadata_by_mapped_hex['#000000'].code == '310'


def test_map_palette_lightness_order():
    mapping = map_palette_to_dmc(['#F0F0F0', '#202020', '#909090', '#CC2233'])
    lightness = [hex_to_lab(h).L for h in mapping.mapped_palette]
    assert lightness == sorted(lightness)


def test_reduced_palette_starts_with_seeds():
    palette = create_reduced_dmc_palette(6)
    assert [d.code for d in palette] == list(REDUCED_PALETTE_SEEDS)


def test_reduced_palette_size_and_uniqueness():
    palette = create_reduced_dmc_palette(12)
    codes = [d.code for d in palette]
    assert len(codes) == 12
    assert len(set(codes)) == 12
    assert codes[:6] == list(REDUCED_PALETTE_SEEDS)


def test_reduced_palette_bounds():
    assert create_reduced_dmc_palette(0) == []
    assert [d.code for d in create_reduced_dmc_palette(3)] == list(REDUCED_PALETTE_SEEDS[:3])
    assert create_reduced_dmc_palette(len(DMC_CATALOG) + 10) == list(DMC_CATALOG)


def test_reduced_palette_is_deterministic():
    assert create_reduced_dmc_palette(15) == create_reduced_dmc_palette(15)


def test_batch_and_proximity_helpers():
    colors = [hex_to_lab('#000000'), hex_to_lab('#FFFFFF')]
    assert [d.code for d in batch_match_to_dmc(colors)] == ['310', 'B5200']
    assert is_close_to_dmc(hex_to_lab('#010101'), '310')
    assert not is_close_to_dmc(hex_to_lab('#FFFFFF'), '310')
    assert not is_close_to_dmc(hex_to_lab('#000000'), 'no-such-code')


def test_catalog_is_read_only():
    assert len(DMC_CATALOG) == 195
    assert len({d.code for d in DMC_CATALOG}) == len(DMC_CATALOG)
    assert get_dmc_color('310').name == 'Black'
    assert get_dmc_color('9999') is None
    with pytest.raises(TypeError):
        DMC_INDEX_BY_CODE['310'] = 0


def test_catalog_search():
    assert '310' in [d.code for d in search_dmc_colors('black')]
    reds = get_dmc_colors_by_family('Red')
    assert reds
    assert all(any(word in d.name.lower() for word in FAMILY_KEYWORDS['red']) for d in reds)
    assert get_dmc_colors_by_family('plaid') == []
