#   Copyright 2018 Kai Groner
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

import base64
import binascii
from collections.abc import Mapping
import json
import logging
import os
from pathlib import Path
import ssl
from urllib.parse import urlencode

import aiohttp

from . import serialization
from . import watch as _watch
from .apis import APIRegistry
from .apis.operation import query_value
from .auth import Auth
from .config import KubeConfig
from .config import default_kubeconfig_path
from .credential_cache import CredentialCache
from .data import DEFAULT_RELEASE
from .errors import ConfigError
from .errors import error_for_status
from .resources import V1


__all__ = '''
    KubeClient
    build_list_params
    default_registry
'''.split()


SERVICE_ACCOUNT_DIR = Path('/var/run/secrets/kubernetes.io/serviceaccount')

_default_registry = None


def default_registry():
    '''The bundled release's registry, loaded once.'''
    global _default_registry
    if _default_registry is None:
        _default_registry = APIRegistry(release=DEFAULT_RELEASE)
    return _default_registry


def build_list_params(
        label_selector=None,
        field_selector=None,
        limit=None,
        continue_=None,
        resource_version=None,
        timeout_seconds=None,
        watch=None):
    '''Query string for list and watch requests.

    >>> build_list_params(label_selector='app=web', limit=10, watch=True)
    'labelSelector=app%3Dweb&limit=10&watch=true'
    '''

    params = []
    if label_selector:
        params.append(('labelSelector', label_selector))
    if field_selector:
        params.append(('fieldSelector', field_selector))
    if limit:
        params.append(('limit', str(limit)))
    if continue_:
        params.append(('continue', continue_))
    if resource_version:
        params.append(('resourceVersion', resource_version))
    if timeout_seconds:
        params.append(('timeoutSeconds', str(timeout_seconds)))
    if watch:
        params.append(('watch', 'true'))
    return urlencode(params)


def build_ssl_context(cluster, auth):
    '''TLS context for a kubeconfig cluster entry and client credentials.'''

    logger = logging.getLogger(__name__)
    ctx = ssl.create_default_context()

    try:
        if cluster.get('certificate-authority-data'):
            try:
                cadata = base64.b64decode(cluster['certificate-authority-data'])
            except (binascii.Error, ValueError) as e:
                raise ConfigError('invalid certificate-authority-data') from e
            ctx.load_verify_locations(cadata=cadata.decode('ascii'))
        elif cluster.get('certificate-authority'):
            ctx.load_verify_locations(cafile=cluster['certificate-authority'])

        if auth.client_cert_file:
            ctx.load_cert_chain(auth.client_cert_file, auth.client_key_file)
    except (ssl.SSLError, OSError) as e:
        raise ConfigError(f'cannot set up TLS: {e}') from e

    if cluster.get('insecure-skip-tls-verify'):
        logger.warning(
                'TLS certificate verification is disabled '
                '(insecure-skip-tls-verify=true)')
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE

    return ctx


class KubeClient:
    '''Kubernetes API client.

    Use as an async context manager, the session (and its connection pool)
    lives for the duration of the `async with` block.

        async with KubeClient.autoconfigure() as k8s:
            pods = await k8s.v1.pods.list('default')
    '''

    build_list_params = staticmethod(build_list_params)

    def __init__(
            self, url, *,
            auth=None,
            ssl_context=None,
            registry=None,
            namespace='default',
            pool_size=25,
            pool_timeout=30,
            request_timeout=30,
            token_file=None,
            credential_cache=None):
        if pool_size <= 0:
            raise ValueError(f'pool_size must be positive (got {pool_size})')
        if pool_timeout <= 0:
            raise ValueError('pool_timeout must be positive')
        if request_timeout <= 0:
            raise ValueError('request_timeout must be positive')

        if registry is None:
            registry = default_registry()

        self._url = url.rstrip('/')
        self.auth = auth if auth is not None else Auth()
        self.registry = registry
        self.namespace = namespace
        self.pool_size = pool_size
        self.pool_timeout = pool_timeout
        self.request_timeout = request_timeout
        self.credential_cache = credential_cache
        self._ssl_context = ssl_context
        self._token_file = Path(token_file) if token_file is not None else None
        self._token_mtime = None
        self._session = None
        self._logger = logging.getLogger(self.__class__.__qualname__)

        if self._token_file is not None:
            self._refresh_token()

        self.v1 = V1(self)

    def __repr__(self):
        return f'<{self.__class__.__name__} {self._url}>'

    @property
    def url(self):
        return self._url

    @classmethod
    def from_kubeconfig(cls, path=None, context=None, cache_credentials=True, **kw):
        config = KubeConfig.load(path)
        ctx, cluster, user = config.resolve(context)

        cache = CredentialCache() if cache_credentials else None
        auth = Auth.from_user(user, cache=cache)

        ssl_context = None
        if cluster['server'].startswith('https:'):
            ssl_context = build_ssl_context(cluster, auth)

        kw.setdefault('namespace', ctx.get('namespace') or 'default')
        return cls(
                cluster['server'],
                auth=auth,
                ssl_context=ssl_context,
                credential_cache=cache,
                **kw)

    # > The recommended way to authenticate to the apiserver is with a
    # > service account credential.  A credential (token) for that service
    # > account is placed into the filesystem tree of each container in that
    # > pod, at /var/run/secrets/kubernetes.io/serviceaccount/token.
    @classmethod
    def in_cluster(cls, service_account_dir=None, **kw):
        host = os.environ.get('KUBERNETES_SERVICE_HOST')
        if not host:
            raise ConfigError('KUBERNETES_SERVICE_HOST is not set, not running in a cluster')
        if ':' in host:
            host = f'[{host}]'
        port = os.environ.get('KUBERNETES_SERVICE_PORT')
        server = f'https://{host}:{port}' if port else f'https://{host}'

        sa_dir = Path(service_account_dir or SERVICE_ACCOUNT_DIR)

        ssl_context = None
        if sa_dir.joinpath('ca.crt').exists():
            ssl_context = ssl.create_default_context(
                    cafile=str(sa_dir.joinpath('ca.crt')))

        if 'namespace' not in kw:
            try:
                kw['namespace'] = sa_dir.joinpath('namespace').read_text().strip() or 'default'
            except OSError:
                kw['namespace'] = 'default'

        token_file = sa_dir.joinpath('token')
        return cls(
                server,
                ssl_context=ssl_context,
                token_file=token_file if token_file.exists() else None,
                **kw)

    @classmethod
    def autoconfigure(cls, **kw):
        '''In-cluster configuration when available, else the kubeconfig.'''
        if os.environ.get('KUBERNETES_SERVICE_HOST'):
            return cls.in_cluster(**kw)
        if default_kubeconfig_path().exists():
            return cls.from_kubeconfig(**kw)
        raise ConfigError(
                'Cannot detect Kubernetes config: not in-cluster and no kubeconfig found')

    async def __aenter__(self):
        self._open_session()
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def close(self):
        # Certificate files are only read while building the SSL context.
        await self._close_session()
        self.auth.cleanup_temp_files()

    def _open_session(self):
        connector = aiohttp.TCPConnector(
                limit=self.pool_size,
                ssl=self._ssl_context if self._ssl_context is not None else True)
        self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(
                    total=self.request_timeout,
                    connect=self.pool_timeout))

    async def _close_session(self):
        if self._session is not None:
            session, self._session = self._session, None
            await session.close()

    def _refresh_token(self):
        '''Re-read the token file when it changed (projected tokens rotate).'''
        try:
            mtime = self._token_file.stat().st_mtime_ns
            if mtime == self._token_mtime:
                return
            token = self._token_file.read_text().strip()
        except OSError as e:
            self._logger.warning('Cannot read token file %s: %s', self._token_file, e)
            return
        if self._token_mtime is not None:
            self._logger.info('Token file changed, reloading token')
        self._token_mtime = mtime
        self.auth.token = token or None

    async def _reload_token_and_session(self, reason):
        self._logger.info('%s, reloading token and recreating HTTP pool', reason)
        if self._token_file is not None:
            self._token_mtime = None
            self._refresh_token()
        await self._close_session()
        self._open_session()

    def _headers(self, accept=None, content_type=None):
        if self._token_file is not None:
            self._refresh_token()
        headers = {}
        if accept:
            headers['Accept'] = accept
        if content_type:
            headers['Content-Type'] = content_type
        return self.auth.apply_headers(headers)

    def _url_for(self, path, params=None):
        url = self._url + path
        if isinstance(params, Mapping):
            params = urlencode([
                    (k, query_value(v))
                    for k,v in params.items() if v is not None ])
        if params:
            url += ('&' if '?' in path else '?') + params
        return url

    def _encode_body(self, body, content_type):
        if body is None:
            return None
        if isinstance(body, (bytes, str)):
            return body
        if content_type.split(';')[0].endswith('yaml'):
            return serialization.dumps(body, 'yaml').encode('utf-8')
        return serialization.dumps(body, 'json').encode('utf-8')

    async def request(
            self, method, path, *,
            params=None,
            body=None,
            content_type=None,
            accept='application/json',
            check_status=True):
        '''Make a request and decode the response.

        JSON responses whose `apiVersion` and `kind` are known decode to
        models, other JSON to plain data, anything else to text.
        '''

        if self._session is None:
            raise RuntimeError(f'{self.__class__.__name__} used outside of async with')

        if body is not None and content_type is None:
            content_type = 'application/json'
        data = self._encode_body(body, content_type)
        url = self._url_for(path, params)

        for attempt in (1, 2):
            self._logger.debug('%(method)s %(path)s', dict(method=method, path=path))
            try:
                async with self._session.request(
                        method, url,
                        headers=self._headers(accept, content_type if data is not None else None),
                        data=data) as resp:
                    return await self._handle_response(resp, path, check_status)
            except aiohttp.ClientSSLError as e:
                if attempt == 2:
                    raise
                self._logger.warning('SSL error (likely token rotation): %s', e)
                await self._reload_token_and_session('SSL error recovery')

    async def get(self, path, params=None, **kw):
        return await self.request('GET', path, params=params, **kw)

    async def post(self, path, body, params=None, **kw):
        return await self.request('POST', path, params=params, body=body, **kw)

    async def put(self, path, body, params=None, **kw):
        return await self.request('PUT', path, params=params, body=body, **kw)

    async def patch(
            self, path, body, params=None, *,
            content_type='application/merge-patch+json',
            **kw):
        return await self.request(
                'PATCH', path,
                params=params, body=body, content_type=content_type, **kw)

    async def delete(self, path, params=None, body=None, **kw):
        return await self.request('DELETE', path, params=params, body=body, **kw)

    async def stream(
            self, method, path, *,
            params=None,
            accept='application/json;stream=watch'):
        '''Generate the lines (bytes) of a streaming response.'''

        if self._session is None:
            raise RuntimeError(f'{self.__class__.__name__} used outside of async with')

        url = self._url_for(path, params)
        self._logger.debug('%(method)s %(path)s', dict(method=method, path=path))

        async with self._session.request(
                method, url,
                headers=self._headers(accept),
                timeout=aiohttp.ClientTimeout(
                    total=None,
                    connect=self.pool_timeout)) as resp:
            if not 200 <= resp.status < 300:
                await self._raise_for_status(resp, path)

            # Objects can be longer than the stream reader's line limit.
            buffer = b''
            async for chunk in resp.content.iter_any():
                buffer += chunk
                *lines, buffer = buffer.split(b'\n')
                for line in lines:
                    if line.strip():
                        yield line
            if buffer.strip():
                yield buffer

        self._logger.debug('end %(method)s %(path)s', dict(method=method, path=path))

    def watch(self, path, **kw):
        '''Async iterator of `WatchEvent`, see `aiokube.watch.watch`.'''
        return _watch.watch(self, path, **kw)

    async def _handle_response(self, resp, path, check_status):
        if check_status and not 200 <= resp.status < 300:
            await self._raise_for_status(resp, path)

        if resp.status == 204:
            return None

        if resp.content_type == 'application/json':
            return self._load_model(await resp.json())

        return await resp.text()

    async def _raise_for_status(self, resp, path):
        body = await resp.text()
        detail = None
        if resp.content_type == 'application/json':
            try:
                data = json.loads(body)
            except ValueError:
                data = None
            if isinstance(data, dict) and data.get('kind') == 'Status':
                detail = self._load_model(data)

        status = resp.status
        if status == 401:
            message = f'Unauthorized ({path}): {body}'
        elif status == 403:
            message = f'Forbidden ({path}): {body}'
        elif status == 404:
            message = f'Not found ({path})'
        elif status == 409:
            message = f'Conflict ({path}): {body}'
        elif status == 410:
            message = f'Gone - resource version expired ({path})'
        elif 400 <= status < 500:
            message = f'Client error {status} ({path}): {body}'
        elif 500 <= status < 600:
            message = f'Server error {status} ({path}): {body}'
        else:
            message = f'Unexpected response {status} ({path}): {body}'

        raise error_for_status(status, detail, message)

    def _load_model(self, data):
        if isinstance(data, dict) and 'apiVersion' in data and 'kind' in data:
            model = self.registry.model_for(data['apiVersion'], data['kind'])
            if model is not None:
                return model._project(data)
        return data

    def bind_api_group(self, api_group):
        return KubeClientAPIGroupBinding(self, api_group)

    async def op(self, op, content_type=None):
        '''Execute an operation from the API registry.'''

        body, headers = None, {}
        if op.body is not None:
            headers, body = op.body_as(content_type)

        if 'application/json' in op.produces:
            accept = 'application/json'
        elif op.produces:
            accept = ', '.join(sorted(op.produces))
        else:
            accept = '*/*'

        return await self.request(
                op.method, op.uri,
                body=body,
                content_type=headers.get('content-type'),
                accept=accept)

    async def stream_op(self, op):
        '''Stream an operation: `WatchEvent`s for watches, text lines for logs.'''

        if 'application/json;stream=watch' in op.produces:
            async for line in self.stream(op.method, op.uri):
                yield _watch.WatchEvent.parse(line, self._load_model)
        else:
            async for line in self.stream(op.method, op.uri, accept='*/*'):
                yield line.decode('utf-8', 'replace')


class KubeClientAPIGroupBinding:
    def __init__(self, client, api_group):
        self._client = client
        self._api_group = api_group

    def __repr__(self):
        return f'<{self.__class__.__name__} {self._api_group!r}>'

    def __getattr__(self, k):
        api = getattr(self._api_group, k)
        if callable(api):
            return KubeClientAPIBinding(self._client, api)
        return self.__class__(self._client, api)

    def __dir__(self):
        yield from dir(self._api_group)


class KubeClientAPIBinding:
    __slots__ = ('_client', '_api', '_method')

    def __init__(self, client, api, method=None):
        self._client = client
        self._api = api
        self._method = method

    def __call__(self, *a, **kw):
        op = self._api(*a, **kw)
        if self._method is not None:
            method = getattr(self._client, self._method)
        elif op.stream:
            method = self._client.stream_op
        else:
            method = self._client.op
        return method(op)

    @property
    def __doc__(self):
        return self._api.__doc__

    @property
    def __signature__(self):
        return self._api.__signature__

    def __getattr__(self, k):
        if k in ('op', 'stream_op'):
            return self.__class__(self._client, self._api, k)
        raise AttributeError(k)
