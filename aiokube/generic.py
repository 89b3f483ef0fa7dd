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

'''Resource access by group, version and plural, for any kind including CRDs.'''

from collections.abc import Mapping

from .errors import SerializationError


__all__ = '''
    GenericResource
    ResourceList
    dig
'''.split()


PATCH_CONTENT_TYPES = {
    'merge': 'application/merge-patch+json',
    'json': 'application/json-patch+json',
    'strategic': 'application/strategic-merge-patch+json',
    'apply': 'application/apply-patch+yaml',
}


def dig(obj, *keys):
    '''Walk the wire data of a model or dict.

    >>> dig({'spec': {'replicas': 3}}, 'spec', 'replicas')
    3
    >>> dig({'spec': {}}, 'spec', 'replicas') is None
    True
    '''

    data = getattr(obj, '_data', obj)
    for key in keys:
        if isinstance(data, Mapping):
            data = data.get(key)
        elif isinstance(data, list) and isinstance(key, int):
            data = data[key] if -len(data) <= key < len(data) else None
        else:
            return None
        if data is None:
            return None
    return data


class ResourceList:
    '''Items of a list response along with its list metadata.'''

    def __init__(self, items, metadata=None, kind=None):
        self.items = items
        self.metadata = metadata
        self.kind = kind

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.kind} ({len(self.items)} items)>'

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.items)

    @property
    def continue_(self):
        return dig(self.metadata, 'continue') or None

    @property
    def resource_version(self):
        return dig(self.metadata, 'resourceVersion') or None

    @classmethod
    def from_response(cls, response, project):
        data = getattr(response, '_data', response)
        if not isinstance(data, Mapping):
            raise SerializationError(
                    f'expected a list object, got {data.__class__.__name__}')
        items = [ project(item) for item in data.get('items') or () ]
        if hasattr(response, '_data'):
            metadata = response.metadata
        else:
            metadata = data.get('metadata')
        return cls(items, metadata, data.get('kind'))


class GenericResource:
    '''CRUD, watch and pagination for one resource type.

    `namespace=None` addresses the cluster scope: cluster scoped resources,
    or namespaced resources across all namespaces for `list` and `watch`.
    '''

    def __init__(self, client, group, version, plural, *, model=None):
        self.client = client
        self.group = group
        self.version = version
        self.plural = plural
        self.model = model

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.plural}.{self.api_version}>'

    @property
    def api_version(self):
        if self.group:
            return f'{self.group}/{self.version}'
        return self.version

    def path(self, namespace=None, name=None, subresource=None):
        '''
        >>> GenericResource(None, 'apps', 'v1', 'deployments').path('default', 'web')
        '/apis/apps/v1/namespaces/default/deployments/web'
        '''

        if self.group:
            parts = ['/apis', self.group, self.version]
        else:
            parts = ['/api', self.version]
        if namespace:
            parts += ['namespaces', namespace]
        parts.append(self.plural)
        if name:
            parts.append(name)
            if subresource:
                parts.append(subresource)
        return '/'.join(parts)

    def _project(self, data):
        if self.model is not None and isinstance(data, dict):
            return self.model._project(data)
        return data

    def _name_of(self, obj):
        name = dig(obj, 'metadata', 'name')
        if not name:
            raise ValueError('object has no metadata.name')
        return name

    async def list(
            self, namespace=None, *,
            label_selector=None,
            field_selector=None,
            limit=None,
            continue_=None,
            resource_version=None,
            timeout_seconds=None):
        params = self.client.build_list_params(
                label_selector=label_selector,
                field_selector=field_selector,
                limit=limit,
                continue_=continue_,
                resource_version=resource_version,
                timeout_seconds=timeout_seconds)
        response = await self.client.get(self.path(namespace), params)
        return ResourceList.from_response(response, self._project)

    async def read(self, name, namespace=None):
        return self._project(await self.client.get(self.path(namespace, name)))

    async def create(self, obj, namespace=None):
        return self._project(await self.client.post(self.path(namespace), obj))

    async def replace(self, name, obj, namespace=None):
        return self._project(await self.client.put(self.path(namespace, name), obj))

    async def patch(self, name, patch, namespace=None, *, patch_type='merge'):
        '''Patch an object, `patch_type` is one of merge, json, strategic or apply.'''
        try:
            content_type = PATCH_CONTENT_TYPES[patch_type]
        except KeyError:
            raise ValueError(f'unknown patch_type {patch_type!r}') from None
        response = await self.client.patch(
                self.path(namespace, name), patch, content_type=content_type)
        return self._project(response)

    async def apply(
            self, obj, namespace=None, *,
            name=None,
            field_manager='aiokube',
            force=False):
        '''Server-side apply.'''
        if name is None:
            name = self._name_of(obj)
        params = {'fieldManager': field_manager}
        if force:
            params['force'] = True
        response = await self.client.patch(
                self.path(namespace, name), obj,
                params=params,
                content_type=PATCH_CONTENT_TYPES['apply'])
        return self._project(response)

    async def delete(
            self, name, namespace=None, *,
            propagation_policy=None,
            grace_period_seconds=None):
        params = {
            'propagationPolicy': propagation_policy,
            'gracePeriodSeconds': grace_period_seconds,
        }
        return await self.client.delete(self.path(namespace, name), params)

    def watch(self, namespace=None, **kw):
        '''Async iterator of `WatchEvent`s for this resource.'''
        kw.setdefault('model', self.model)
        return self.client.watch(self.path(namespace), **kw)

    async def paginate(
            self, namespace=None, *,
            page_size=500,
            label_selector=None,
            field_selector=None):
        '''Generate every item, following `continue` tokens.'''
        continue_ = None
        while True:
            page = await self.list(
                    namespace,
                    label_selector=label_selector,
                    field_selector=field_selector,
                    limit=page_size,
                    continue_=continue_)
            for item in page.items:
                yield item
            continue_ = page.continue_
            if not continue_:
                break
