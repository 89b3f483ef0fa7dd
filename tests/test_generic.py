import json

import pytest
import yaml

from aiokube.client import KubeClient
from aiokube.errors import SerializationError
from aiokube.generic import GenericResource
from aiokube.generic import ResourceList
from aiokube.generic import dig

from conftest import pod
from conftest import status


WIDGETS = '/apis/widgets.example.io/v1/namespaces/team/widgets'


def widget(name, **spec):
    return {
        'apiVersion': 'widgets.example.io/v1',
        'kind': 'Widget',
        'metadata': {'name': name, 'namespace': 'team'},
        'spec': spec,
    }


def widgets(client):
    return GenericResource(client, 'widgets.example.io', 'v1', 'widgets')


@pytest.mark.parametrize('args, expected', [
    ((), '/apis/widgets.example.io/v1/widgets'),
    (('team',), WIDGETS),
    (('team', 'w1'), f'{WIDGETS}/w1'),
    (('team', 'w1', 'status'), f'{WIDGETS}/w1/status'),
    ((None, 'w1', 'scale'), '/apis/widgets.example.io/v1/widgets/w1/scale'),
])
def test_paths(args, expected):
    assert widgets(None).path(*args) == expected


def test_core_paths():
    pods = GenericResource(None, '', 'v1', 'pods')
    assert pods.api_version == 'v1'
    assert pods.path('default', 'web', 'log') == '/api/v1/namespaces/default/pods/web/log'
    assert GenericResource(None, '', 'v1', 'nodes').path() == '/api/v1/nodes'
    assert widgets(None).api_version == 'widgets.example.io/v1'


def test_dig():
    data = {'spec': {'containers': [{'name': 'a'}]}}
    assert dig(data, 'spec', 'containers', 0, 'name') == 'a'
    assert dig(data, 'spec', 'containers', 3, 'name') is None
    assert dig(data, 'spec', 'missing', 'name') is None
    assert dig(data, 'spec', 'containers', 'name') is None


def test_resource_list_from_plain_response():
    page = ResourceList.from_response({
        'kind': 'WidgetList',
        'metadata': {'continue': 'next', 'resourceVersion': '9'},
        'items': [widget('a'), widget('b')],
    }, lambda item: item['metadata']['name'])
    assert list(page) == ['a', 'b']
    assert len(page) == 2
    assert page.kind == 'WidgetList'
    assert page.continue_ == 'next'
    assert page.resource_version == '9'

    empty = ResourceList.from_response({'metadata': {'continue': ''}}, lambda item: item)
    assert empty.items == []
    assert empty.continue_ is None

    with pytest.raises(SerializationError):
        ResourceList.from_response('nope', lambda item: item)


@pytest.mark.asyncio
async def test_list(fake_api):
    api = fake_api()
    api.json('GET', WIDGETS, {
        'apiVersion': 'widgets.example.io/v1',
        'kind': 'WidgetList',
        'metadata': {'continue': 'tok'},
        'items': [widget('a', size=1)],
    })
    async with api:
        page = await widgets(api.client).list('team', label_selector='tier=web', limit=10)

    assert page.items == [widget('a', size=1)]
    assert page.continue_ == 'tok'
    assert api.requests[0].query == {'labelSelector': 'tier=web', 'limit': '10'}


@pytest.mark.asyncio
async def test_list_with_model(fake_api, registry):
    api = fake_api()
    api.json('GET', '/api/v1/pods', {
        'apiVersion': 'v1',
        'kind': 'PodList',
        'metadata': {'resourceVersion': '77'},
        'items': [pod('a'), pod('b', namespace='other')],
    })
    Pod = registry.models.core_v1.Pod
    async with api:
        pods = GenericResource(api.client, '', 'v1', 'pods', model=Pod)
        page = await pods.list()

    assert all( isinstance(p, Pod) for p in page )
    assert [ p.metadata.namespace for p in page ] == ['default', 'other']
    assert page.resource_version == '77'
    assert page.continue_ is None


@pytest.mark.asyncio
async def test_paginate(fake_api):
    api = fake_api()
    api.sequence('GET', WIDGETS, [
        (200, {'kind': 'WidgetList', 'metadata': {'continue': 'p2'}, 'items': [widget('a'), widget('b')]}),
        (200, {'kind': 'WidgetList', 'metadata': {}, 'items': [widget('c')]}),
    ])
    async with api:
        names = [ w['metadata']['name'] async for w in widgets(api.client).paginate('team', page_size=2) ]

    assert names == ['a', 'b', 'c']
    first, second = api.requests
    assert first.query == {'limit': '2'}
    assert second.query == {'limit': '2', 'continue': 'p2'}


@pytest.mark.asyncio
async def test_crud(fake_api):
    api = fake_api()
    api.json('GET', f'{WIDGETS}/a', widget('a', size=1))
    api.json('POST', WIDGETS, widget('b', size=2), status=201)
    api.json('PUT', f'{WIDGETS}/b', widget('b', size=3))
    api.json('DELETE', f'{WIDGETS}/b', status(200, '', 'deleted'))
    async with api:
        resource = widgets(api.client)
        read = await resource.read('a', 'team')
        created = await resource.create(widget('b', size=2), 'team')
        replaced = await resource.replace('b', widget('b', size=3), 'team')
        deleted = await resource.delete(
                'b', 'team', propagation_policy='Foreground')

    assert read['spec'] == {'size': 1}
    assert created['spec'] == {'size': 2}
    assert replaced['spec'] == {'size': 3}
    assert deleted.message == 'deleted'

    get, post, put, delete = api.requests
    assert post.json() == widget('b', size=2)
    assert put.json() == widget('b', size=3)
    assert delete.query == {'propagationPolicy': 'Foreground'}


@pytest.mark.parametrize('patch_type, content_type', [
    ('merge', 'application/merge-patch+json'),
    ('strategic', 'application/strategic-merge-patch+json'),
])
@pytest.mark.asyncio
async def test_patch(fake_api, patch_type, content_type):
    api = fake_api()
    api.json('PATCH', f'{WIDGETS}/a', widget('a', size=5))
    async with api:
        patched = await widgets(api.client).patch(
                'a', {'spec': {'size': 5}}, 'team', patch_type=patch_type)

    assert patched['spec'] == {'size': 5}
    request, = api.requests
    assert request.headers['Content-Type'] == content_type
    assert request.json() == {'spec': {'size': 5}}


@pytest.mark.asyncio
async def test_json_patch(fake_api):
    api = fake_api()
    api.json('PATCH', f'{WIDGETS}/a', widget('a', size=6))
    ops = [{'op': 'replace', 'path': '/spec/size', 'value': 6}]
    async with api:
        await widgets(api.client).patch('a', ops, 'team', patch_type='json')

    request, = api.requests
    assert request.headers['Content-Type'] == 'application/json-patch+json'
    assert json.loads(request.body) == ops


@pytest.mark.asyncio
async def test_unknown_patch_type(registry):
    client = KubeClient('http://localhost', registry=registry)
    with pytest.raises(ValueError):
        await widgets(client).patch('a', {}, 'team', patch_type='rfc')


@pytest.mark.asyncio
async def test_apply(fake_api):
    api = fake_api()
    api.json('PATCH', f'{WIDGETS}/a', widget('a', size=7))
    async with api:
        resource = widgets(api.client)
        await resource.apply(widget('a', size=7), 'team')
        await resource.apply(widget('a', size=7), 'team', field_manager='ci', force=True)

    plain, forced = api.requests
    assert plain.headers['Content-Type'] == 'application/apply-patch+yaml'
    assert plain.query == {'fieldManager': 'aiokube'}
    assert yaml.safe_load(plain.body) == widget('a', size=7)
    assert forced.query == {'fieldManager': 'ci', 'force': 'true'}


@pytest.mark.asyncio
async def test_apply_needs_a_name(registry):
    client = KubeClient('http://localhost', registry=registry)
    with pytest.raises(ValueError):
        await widgets(client).apply({'spec': {}}, 'team')


@pytest.mark.asyncio
async def test_watch_uses_resource_model(fake_api, registry):
    Pod = registry.models.core_v1.Pod
    api = fake_api()
    api.stream('/api/v1/namespaces/default/pods', [[
        {'type': 'ADDED', 'object': pod('a', resource_version='1')},
    ]])
    async with api:
        pods = GenericResource(api.client, '', 'v1', 'pods', model=Pod)
        watch = pods.watch('default')
        async for event in watch:
            break
        await watch.aclose()

    assert isinstance(event.object, Pod)
    assert api.requests[0].query['watch'] == 'true'
