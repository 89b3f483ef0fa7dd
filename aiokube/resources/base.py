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

import asyncio

from ..errors import K8sTimeoutError
from ..generic import GenericResource


class KindResource(GenericResource):
    '''A `GenericResource` bound to one catalog kind.

    Namespaced kinds default to the client's namespace instead of the
    cluster scope, use `list_all_namespaces` to list across namespaces.
    '''

    group = ''
    version = 'v1'
    plural = None
    kind = None
    namespaced = True

    def __init__(self, client):
        model = client.registry.models_by_gvk.get(
                (self.group, self.version, self.kind))
        super().__init__(
                client, self.group, self.version, self.plural, model=model)

    def _ns(self, namespace):
        if not self.namespaced:
            if namespace is not None:
                raise TypeError(f'{self.kind} is not namespaced')
            return None
        return namespace or self.client.namespace

    async def list(self, namespace=None, **kw):
        return await super().list(self._ns(namespace), **kw)

    async def list_all_namespaces(self, **kw):
        return await super().list(None, **kw)

    async def read(self, name, namespace=None):
        return await super().read(name, self._ns(namespace))

    async def delete(self, name, namespace=None, **kw):
        return await super().delete(name, self._ns(namespace), **kw)

    async def _create(self, obj, namespace=None):
        return await super().create(obj, self._ns(namespace))

    async def _patch(self, name, patch, namespace=None, **kw):
        return await super().patch(name, patch, self._ns(namespace), **kw)

    def paginate(self, namespace=None, **kw):
        return super().paginate(self._ns(namespace), **kw)

    def watch(self, namespace=None, **kw):
        return super().watch(self._ns(namespace), **kw)

    async def _wait_for(self, name, namespace, predicate, *, timeout, interval, what):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            obj = await self.read(name, namespace)
            if predicate(obj):
                return obj
            if loop.time() > deadline:
                raise K8sTimeoutError(
                        f'Timeout waiting for {self.kind.lower()} {name} {what}')
            await asyncio.sleep(interval)
