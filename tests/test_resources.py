import base64

import pytest

from aiokube.client import KubeClient
from aiokube.errors import K8sTimeoutError
from aiokube.models.lens import parse_time
from aiokube.resources import Secrets
from aiokube.resources.deployments import RESTARTED_AT_ANNOTATION
from aiokube.resources.deployments import deployment_ready
from aiokube.resources.pods import pod_ready

from conftest import pod
from conftest import status


def deployment(name, replicas=3, ready=None, updated=None):
    data = {
        'apiVersion': 'apps/v1',
        'kind': 'Deployment',
        'metadata': {'name': name, 'namespace': 'default'},
        'spec': {'replicas': replicas},
    }
    if ready is not None or updated is not None:
        data['status'] = {}
        if ready is not None:
            data['status']['readyReplicas'] = ready
        if updated is not None:
            data['status']['updatedReplicas'] = updated
    return data


def ready_pod(name, *ready):
    return pod(name, phase='Running', containerStatuses=[
        {'name': f'c{i}', 'ready': r} for i, r in enumerate(ready) ])


def test_v1_resources(registry):
    client = KubeClient('http://localhost', registry=registry)
    v1 = client.v1
    assert v1.pods.model is registry.models.core_v1.Pod
    assert v1.deployments.model is registry.models.apps_v1.Deployment
    assert v1.services.model is registry.models.core_v1.Service
    assert v1.config_maps.model is registry.models.core_v1.ConfigMap
    assert v1.secrets.model is registry.models.core_v1.Secret
    assert v1.namespaces.model is registry.models.core_v1.Namespace
    assert v1.deployments.path('default') == '/apis/apps/v1/namespaces/default/deployments'


def test_predicates():
    assert pod_ready(ready_pod('a', True, True))
    assert not pod_ready(ready_pod('a', True, False))
    assert not pod_ready(ready_pod('a'))
    assert not pod_ready(pod('a'))

    assert deployment_ready(deployment('d', 2, ready=2, updated=2))
    assert not deployment_ready(deployment('d', 2, ready=2, updated=1))
    assert not deployment_ready(deployment('d', 2))
    assert deployment_ready(deployment('d', 0, ready=0))


@pytest.mark.asyncio
async def test_namespace_defaults(fake_api, registry):
    api = fake_api(namespace='team')
    pod_list = {'apiVersion': 'v1', 'kind': 'PodList', 'metadata': {}, 'items': [pod('a', 'team')]}
    api.json('GET', '/api/v1/namespaces/team/pods', pod_list)
    api.json('GET', '/api/v1/namespaces/other/pods', pod_list)
    api.json('GET', '/api/v1/pods', pod_list)
    async with api:
        pods = api.client.v1.pods
        default = await pods.list()
        other = await pods.list('other', label_selector='app=web')
        everywhere = await pods.list_all_namespaces()

    assert isinstance(default.items[0], registry.models.core_v1.Pod)
    assert len(other) == len(everywhere) == 1
    assert [ r.path for r in api.requests ] == [
        '/api/v1/namespaces/team/pods',
        '/api/v1/namespaces/other/pods',
        '/api/v1/pods',
    ]
    assert api.requests[1].query == {'labelSelector': 'app=web'}


@pytest.mark.asyncio
async def test_cluster_scoped(fake_api, registry):
    api = fake_api()
    api.json('GET', '/api/v1/namespaces/kube-system', {
        'apiVersion': 'v1', 'kind': 'Namespace', 'metadata': {'name': 'kube-system'}})
    async with api:
        namespace = await api.client.v1.namespaces.read('kube-system')
        with pytest.raises(TypeError):
            await api.client.v1.namespaces.read('kube-system', 'default')

    assert isinstance(namespace, registry.models.core_v1.Namespace)
    assert len(api.requests) == 1


@pytest.mark.asyncio
async def test_pod_readiness(fake_api):
    api = fake_api()
    api.json('GET', '/api/v1/namespaces/default/pods/ready', ready_pod('ready', True))
    api.json('GET', '/api/v1/namespaces/default/pods/pending', pod('pending', phase='Pending'))
    api.json('GET', '/api/v1/namespaces/default/pods/gone', status(404, 'NotFound', 'nope'), status=404)
    async with api:
        pods = api.client.v1.pods
        assert await pods.is_ready('ready')
        assert await pods.is_running('ready')
        assert not await pods.is_ready('pending')
        assert not await pods.is_running('pending')
        assert not await pods.is_ready('gone')
        assert not await pods.is_running('gone')


@pytest.mark.asyncio
async def test_wait_until_ready(fake_api):
    api = fake_api()
    api.sequence('GET', '/api/v1/namespaces/default/pods/web', [
        (200, pod('web', phase='Pending')),
        (200, ready_pod('web', False)),
        (200, ready_pod('web', True)),
    ])
    async with api:
        result = await api.client.v1.pods.wait_until_ready('web', timeout=5, interval=0.01)

    assert result.status.container_statuses[0].ready
    assert len(api.requests) == 3


@pytest.mark.asyncio
async def test_wait_until_running_times_out(fake_api):
    api = fake_api()
    api.json('GET', '/api/v1/namespaces/default/pods/web', pod('web', phase='Pending'))
    async with api:
        with pytest.raises(K8sTimeoutError) as exc_info:
            await api.client.v1.pods.wait_until_running('web', timeout=0.05, interval=0.01)
    assert str(exc_info.value) == 'Timeout waiting for pod web to be running'


@pytest.mark.asyncio
async def test_logs(fake_api):
    api = fake_api()
    api.stream(
            '/api/v1/namespaces/default/pods/web/log',
            [['line 1', 'line 2'], ['one', 'two']],
            content_type='text/plain')
    async with api:
        pods = api.client.v1.pods
        text = await pods.logs('web', container='app', tail_lines=10, timestamps=True)
        followed = [ line async for line in pods.follow_logs('web', container='app') ]

    assert text == 'line 1\nline 2\n'
    assert followed == ['one', 'two']
    logs, follow = api.requests
    assert logs.query == {'container': 'app', 'tailLines': '10', 'timestamps': 'true'}
    assert logs.headers['Accept'] == '*/*'
    assert follow.query == {'container': 'app', 'follow': 'true'}


@pytest.mark.asyncio
async def test_scale_and_restart(fake_api):
    api = fake_api()
    api.json('PATCH', '/apis/apps/v1/namespaces/default/deployments/web', deployment('web', 5))
    async with api:
        deployments = api.client.v1.deployments
        scaled = await deployments.scale('web', 5)
        await deployments.restart('web')

    assert scaled.spec.replicas == 5
    scale, restart = api.requests
    assert scale.headers['Content-Type'] == 'application/merge-patch+json'
    assert scale.json() == {'spec': {'replicas': 5}}
    assert restart.headers['Content-Type'] == 'application/strategic-merge-patch+json'
    annotations = restart.json()['spec']['template']['metadata']['annotations']
    restarted_at = annotations[RESTARTED_AT_ANNOTATION]
    assert restarted_at.endswith('Z')
    assert parse_time(restarted_at).microsecond == 0


@pytest.mark.asyncio
async def test_deployment_status(fake_api):
    api = fake_api()
    api.json('GET', '/apis/apps/v1/namespaces/default/deployments/ready',
             deployment('ready', 2, ready=2, updated=1))
    api.json('GET', '/apis/apps/v1/namespaces/default/deployments/new', deployment('new', 2))
    async with api:
        deployments = api.client.v1.deployments
        assert await deployments.is_ready('ready')
        assert not await deployments.is_ready('new')
        assert await deployments.replicas('ready') == 2
        with pytest.raises(K8sTimeoutError):
            await deployments.wait_until_ready('ready', timeout=0.05, interval=0.01)


@pytest.mark.asyncio
async def test_deployment_wait(fake_api):
    api = fake_api()
    api.sequence('GET', '/apis/apps/v1/namespaces/default/deployments/web', [
        (200, deployment('web', 2, ready=1, updated=2)),
        (200, deployment('web', 2, ready=2, updated=2)),
    ])
    async with api:
        result = await api.client.v1.deployments.wait_until_ready('web', interval=0.01)
    assert result.status.ready_replicas == 2


@pytest.mark.asyncio
async def test_create_config_maps_and_secrets(fake_api, registry):
    m = registry.models.core_v1
    api = fake_api()
    api.json('POST', '/api/v1/namespaces/default/configmaps', {
        'apiVersion': 'v1', 'kind': 'ConfigMap', 'metadata': {'name': 'settings'}}, status=201)
    api.json('POST', '/api/v1/namespaces/apps/secrets', {
        'apiVersion': 'v1', 'kind': 'Secret', 'metadata': {'name': 'creds'}}, status=201)
    async with api:
        cm = await api.client.v1.config_maps.create(
                m.ConfigMap(metadata={'name': 'settings'}, data={'a': '1'}))
        secret = await api.client.v1.secrets.create(
                m.Secret(metadata={'name': 'creds'}, string_data={'password': 'hunter2'}),
                'apps')

    assert isinstance(cm, m.ConfigMap)
    assert isinstance(secret, m.Secret)
    cm_request, secret_request = api.requests
    assert cm_request.json()['data'] == {'a': '1'}
    assert secret_request.json()['stringData'] == {'password': 'hunter2'}


@pytest.mark.asyncio
async def test_delete_service(fake_api):
    api = fake_api()
    api.json('DELETE', '/api/v1/namespaces/default/services/web', status(200, '', 'ok'))
    async with api:
        result = await api.client.v1.services.delete('web', grace_period_seconds=0)
    assert result.message == 'ok'
    assert api.requests[0].query == {'gracePeriodSeconds': '0'}


def test_decoded_secret(registry):
    secret = registry.models.core_v1.Secret(
            data={
                'user': base64.b64encode(b'admin').decode(),
                'password': base64.b64encode(b'old').decode(),
            },
            string_data={'password': 'new'})
    assert Secrets.decoded(secret) == {'user': b'admin', 'password': b'new'}
    assert Secrets.decoded({}) == {}
