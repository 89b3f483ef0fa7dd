import json

from aiohttp import web
from aiohttp.test_utils import TestServer
import pytest

from aiokube.apis import APIRegistry
from aiokube.client import KubeClient


class RecordedRequest:
    def __init__(self, method, path, query_string, query, headers, body):
        self.method = method
        self.path = path
        self.query_string = query_string
        self.query = query
        self.headers = headers
        self.body = body

    def json(self):
        return json.loads(self.body)


class FakeAPI:
    '''An aiohttp server standing in for the API server, plus a client for it.'''

    def __init__(self, registry, **client_kw):
        self.registry = registry
        self.client_kw = client_kw
        self.requests = []

        @web.middleware
        async def record(request, handler):
            body = await request.read()
            self.requests.append(RecordedRequest(
                    request.method,
                    request.path,
                    request.query_string,
                    dict(request.query),
                    dict(request.headers),
                    body))
            return await handler(request)

        self.app = web.Application(middlewares=[record])

    def route(self, method, path, handler):
        self.app.router.add_route(method, path, handler)

    def json(self, method, path, data, status=200):
        async def handler(request):
            return web.json_response(data, status=status)
        self.route(method, path, handler)

    def sequence(self, method, path, responses):
        '''Answer successive requests with successive `(status, data)`.'''
        responses = list(responses)

        async def handler(request):
            status, data = responses.pop(0) if len(responses) > 1 else responses[0]
            return web.json_response(data, status=status)
        self.route(method, path, handler)

    def stream(self, path, connections, content_type='application/json'):
        '''Each connection writes one list of lines (dicts are JSON encoded).'''
        connections = list(connections)

        async def handler(request):
            lines = connections.pop(0) if connections else []
            resp = web.StreamResponse(headers={'Content-Type': content_type})
            await resp.prepare(request)
            for line in lines:
                if not isinstance(line, str):
                    line = json.dumps(line)
                await resp.write(line.encode('utf-8') + b'\n')
            await resp.write_eof()
            return resp
        self.route('GET', path, handler)

    async def __aenter__(self):
        self.server = TestServer(self.app)
        await self.server.start_server()
        self.client = KubeClient(
                str(self.server.make_url('/')),
                registry=self.registry,
                **self.client_kw)
        await self.client.__aenter__()
        return self

    async def __aexit__(self, *exc):
        await self.client.__aexit__(*exc)
        await self.server.close()


def status(code, reason, message):
    return {
        'kind': 'Status',
        'apiVersion': 'v1',
        'metadata': {},
        'status': 'Failure',
        'message': message,
        'reason': reason,
        'code': code,
    }


def pod(name, namespace='default', resource_version='1', **status):
    data = {
        'apiVersion': 'v1',
        'kind': 'Pod',
        'metadata': {
            'name': name,
            'namespace': namespace,
            'resourceVersion': resource_version,
        },
    }
    if status:
        data['status'] = status
    return data


@pytest.fixture(scope='session')
def registry():
    return APIRegistry(release='1.34')


@pytest.fixture
def fake_api(registry):
    def make(**client_kw):
        return FakeAPI(registry, **client_kw)
    return make


@pytest.fixture
def status_body():
    return status


@pytest.fixture
def pod_body():
    return pod
