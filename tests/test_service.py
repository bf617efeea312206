import io

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from stitch_service import main
from stitch_service.main import app

client = TestClient(app)

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
RED = (255, 0, 0)


def png_bytes(rows):
    """Encode rows of RGB tuples as a PNG upload."""
    arr = np.array(rows, dtype=np.uint8)
    buf = io.BytesIO()
    Image.fromarray(arr, 'RGB').save(buf, format='PNG')
    return buf.getvalue()


def upload(rows):
    return {'file': ('pattern.png', png_bytes(rows), 'image/png')}


SQUARE = [
    [WHITE, WHITE, WHITE, WHITE],
    [WHITE, BLACK, BLACK, WHITE],
    [WHITE, BLACK, RED, WHITE],
    [WHITE, WHITE, WHITE, WHITE],
]


def test_health():
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json() == {
        'status': 'ok',
        'service': 'stitch_service',
        'catalog_size': len(main.DMC_CATALOG),
    }


def test_region_graph():
    response = client.post('/region-graph', files=upload(SQUARE), data={'fabric_hex': '#FFFFFF'})
    assert response.status_code == 200
    data = response.json()
    assert (data['width'], data['height']) == (4, 4)
    assert [r['area'] for r in data['regions']] == [3, 1]
    assert data['adjacency'] == {'1': [2], '2': [1]}
    assert data['lockHash']
    assert 'pixelRegionId' not in data


def test_region_graph_with_pixels():
    response = client.post(
        '/region-graph',
        files=upload(SQUARE),
        data={'fabric_hex': '#FFFFFF', 'include_pixels': 'true'},
    )
    assert response.status_code == 200
    assert len(response.json()['pixelRegionId']) == 16


def test_vectorize_json():
    response = client.post('/vectorize', files=upload(SQUARE), data={'fabric_hex': '#FFFFFF'})
    assert response.status_code == 200
    data = response.json()
    assert data['paths']
    assert {p['label'] for p in data['paths']} <= {0, 1, 2}


def test_vectorize_svg():
    response = client.post(
        '/vectorize',
        files=upload(SQUARE),
        data={'fabric_hex': '#FFFFFF', 'format': 'svg'},
    )
    assert response.status_code == 200
    assert response.headers['content-type'].startswith('image/svg+xml')
    assert '<svg' in response.text


def test_vectorize_rejects_unknown_format():
    response = client.post('/vectorize', files=upload(SQUARE), data={'format': 'pdf'})
    assert response.status_code == 400


def test_legend_raw_colors():
    response = client.post('/legend', files=upload(SQUARE), data={'fabric_hex': '#FFFFFF'})
    assert response.status_code == 200
    legend = response.json()['legend']
    assert [e['stitchCount'] for e in legend] == [3, 1]
    assert not any(e['isMappedToDmc'] for e in legend)


def test_legend_mapped_to_dmc():
    response = client.post(
        '/legend',
        files=upload(SQUARE),
        data={'fabric_hex': '#FFFFFF', 'map_to_dmc': 'true'},
    )
    assert response.status_code == 200
    legend = response.json()['legend']
    assert legend[0]['dmcCode'] == '310'
    assert legend[0]['coveragePercent'] == 18.8
    assert all(e['isMappedToDmc'] for e in legend)


def test_match():
    response = client.post('/match', json={'hex': '#000000', 'count': 3})
    assert response.status_code == 200
    data = response.json()
    assert data['metric'] == 'CMC'
    assert len(data['matches']) == 3
    assert data['matches'][0]['code'] == '310'


def test_match_with_exclusions():
    response = client.post('/match', json={'hex': '#000000', 'excluded': ['310'], 'metric': 'cie76'})
    assert response.status_code == 200
    assert '310' not in [m['code'] for m in response.json()['matches']]


@pytest.mark.parametrize('body', [
    {'hex': 'not-a-color'},
    {'hex': '#000000', 'metric': 'bogus'},
    {'hex': '#000000', 'excluded': [d.code for d in main.DMC_CATALOG]},
])
def test_match_bad_requests(body):
    assert client.post('/match', json=body).status_code == 400


def test_reduced_palette():
    response = client.get('/palette/reduced', params={'count': 8})
    assert response.status_code == 200
    data = response.json()
    assert data['count'] == 8
    assert data['threads'][0]['code'] == 'White'


def test_unreadable_image():
    files = {'file': ('pattern.png', b'not an image', 'image/png')}
    assert client.post('/region-graph', files=files).status_code == 400


def test_image_too_large(monkeypatch):
    monkeypatch.setattr(main, 'MAX_PIXELS', 10)
    response = client.post('/region-graph', files=upload(SQUARE))
    assert response.status_code == 413
