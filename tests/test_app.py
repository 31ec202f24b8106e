import io

import pytest

import app as app_module
import config
from model_builders import block, model_ref, model_text


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'UPLOAD_FOLDER', str(tmp_path))
    app_module.app.config['TESTING'] = True
    with app_module.app.test_client() as client:
        yield client


def _upload(text, name):
    return io.BytesIO(text.encode('utf-8')), name


def test_health(client):
    resp = client.get('/health')

    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'running'


def test_connect_endpoint(client, tmp_path):
    data = {'file': _upload(model_text('top', blocks=[block('Gain', 'G')]), 'top.mdl')}

    resp = client.post('/connect', data=data, content_type='multipart/form-data')

    body = resp.get_json()
    assert resp.status_code == 200
    assert body['success'] is True
    assert body['unconnected_inputs'] == 1
    assert body['unconnected_outputs'] == 1
    assert body['connections_made'] == 2
    assert {r['stub'] for r in body['repairs']} == {'top/G_Ground_1', 'top/G_Terminator_1'}
    # Upload directory is cleaned up
    assert list(tmp_path.iterdir()) == []


def test_references_endpoint_with_extra_files(client):
    data = {
        'file': _upload(model_text('A', blocks=[model_ref('r', 'B')]), 'A.mdl'),
        'files': [
            _upload(model_text('B', blocks=[model_ref('r', 'C')]), 'B.mdl'),
            _upload(model_text('C'), 'C.mdl'),
        ],
    }

    resp = client.post('/references', data=data, content_type='multipart/form-data')

    body = resp.get_json()
    assert resp.status_code == 200
    assert body['reference_models'] == ['B', 'C']
    assert body['count'] == 2
    assert body['failures'] == {}


def test_missing_file(client):
    resp = client.post('/connect', data={}, content_type='multipart/form-data')

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'No file uploaded'


def test_unsupported_extension(client):
    data = {'file': _upload('hello', 'notes.txt')}

    resp = client.post('/references', data=data, content_type='multipart/form-data')

    assert resp.status_code == 400
    assert 'Unsupported file type' in resp.get_json()['error']


def test_unreadable_model(client):
    data = {'file': _upload('garbage', 'bad.mdl')}

    resp = client.post('/connect', data=data, content_type='multipart/form-data')

    assert resp.status_code == 422
    assert 'error' in resp.get_json()
