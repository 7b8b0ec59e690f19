import json

import pytest

flask = pytest.importorskip("flask")
msgpack = pytest.importorskip("msgpack")

from sigflow.flow import configure
from sigflow.web_gui import api
from sigflow.web_gui.server_flask import create_app

JSON = {'Accept': 'application/json'}
MSGPACK = {'Accept': 'application/msgpack'}


@pytest.fixture
def client():
    config = configure.load_config("default")
    config['show_exceptions'] = True
    app = create_app(config)
    return app.test_client()


def call(client, method, headers=JSON, **kwargs):
    response = client.post('/' + method, data=json.dumps(kwargs),
                           content_type='application/json', headers=headers)
    return response


def test_root_lists_methods(client):
    content = json.loads(client.get('/').data)
    assert content['name'] == 'sigflow'
    assert 'connect' in content['methods']
    assert 'import_layout' in content['methods']


def test_edit_and_play(client):
    assert json.loads(call(client, 'add_node', kind='channel', config={'index': 0}).data)['value'] == 'channel-0'
    assert json.loads(call(client, 'add_node', kind='plot').data)['ok']
    notice = json.loads(call(client, 'connect', source='channel-0', target='plot-1-1').data)
    assert notice['value'] == [{'from': 'channel-0', 'to': 'plot-1-1'}]

    notice = json.loads(call(client, 'play').data)
    assert notice['ok']
    assert notice['value'][0]['id'] == 'plot-1-1'

    result = json.loads(call(client, 'push_samples', samples=[{'ch0': 1.5, 'counter': 1}]).data)
    assert result == {'delivered': 1, 'missing': 0}
    states = json.loads(call(client, 'widget_states').data)
    assert states['plot-1-1']['received'] == 1

    graph = json.loads(call(client, 'get_graph').data)
    assert graph['playing']
    assert [t['id'] for t in graph['tiles']] == ['plot-1-1']
    assert json.loads(call(client, 'stop').data)['message'] == "Stopped"


def test_rejected_edit_is_a_notice(client):
    notice = json.loads(call(client, 'remove_node', node_id='nothing').data)
    assert notice['ok'] is False
    assert notice['kind'] == 'error'


def test_msgpack_response(client):
    response = call(client, 'get_graph', headers=MSGPACK)
    assert response.headers['Content-Type'] == 'application/msgpack'
    content = msgpack.unpackb(response.data, raw=False)
    assert content['nodes'] == []
    assert content['gridSettings']['cols'] == 24


def test_get_request(client):
    response = client.get('/get_graph', headers=JSON)
    assert json.loads(response.data)['channelCount'] == 3


def test_layout_round_trip(client):
    call(client, 'add_node', kind='fft')
    exported = json.loads(call(client, 'export_layout').data)
    assert exported['filename'].startswith('flow-layout-')
    call(client, 'remove_node', node_id='fft-1')
    notice = json.loads(call(client, 'import_layout', layout=exported['layout']).data)
    assert notice['ok']
    assert notice['value']['skipped'] == 0
    graph = json.loads(call(client, 'get_graph').data)
    assert [n['id'] for n in graph['nodes']] == ['fft-1']


def test_route(client):
    call(client, 'add_node', kind='channel', config={'index': 0})
    call(client, 'add_node', kind='plot')
    call(client, 'connect', source='channel-0', target='plot-1-1')
    paths = json.loads(call(client, 'route', boxes={
        'channel-0': [0, 0, 100, 40], 'plot-1-1': [300, 0, 100, 40]}).data)
    assert paths == {'channel-0=>plot-1-1': "M 100 20 C 200 20, 200 20, 300 20"}


def test_exception_response(client):
    response = call(client, 'connect', headers=MSGPACK, source='channel-0')
    assert response.status_code == 500
    content = msgpack.unpackb(response.data, raw=False)
    assert 'TypeError' in content['exception']


def test_session_is_reset_per_app(client):
    assert api.get_session().graph.nodes == {}
