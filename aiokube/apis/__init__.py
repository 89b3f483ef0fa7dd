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

import re

from ..models import ModelRegistry
from ..nestedns import NS
from ..serialization import camel_to_snake

from .operation import K8sAPIOperation
from .operation import StreamingMixin


__all__ = '''
    APIRegistry
    K8sAPIOperation
    StreamingMixin
'''.split()


class APIRegistry(ModelRegistry):
    '''Registry of swagger spec derived models and APIs.

    >>> registry = APIRegistry(release='1.34')
    >>> registry.models.core_v1.Container
    <class 'aiokube.models.core_v1.Container'>
    >>> registry.apis.core_v1.list_namespaced_pod
    <class 'aiokube.apis.core_v1.list_namespaced_pod'>

    Operations that can answer with a stream (watches, `watch=true` lists
    and followed pod logs) get a `stream` flag that the client dispatches on.
    '''

    def __init__(self, release=None):
        super().__init__()
        self.apis = NS(missing=self._get_api)
        self._api_desc = {}
        self._api_bases = []
        self._add_streaming_bases()

        if release is not None:
            self.load_release_spec(release)

    def _add_streaming_bases(self):
        # Later registrations are consulted first.
        @self.add_api_base(r'(?:\w+\.)?(?:read|list)_\w+')
        class K8sAPIReadItemOrCollectionOperation(
                StreamingMixin.bind_stream_condition(lambda self: self.args.get('watch')),
                K8sAPIOperation):
            pass

        @self.add_api_base(r'(?:\w+\.)?watch_\w+')
        class K8sAPIWatchOperation(StreamingMixin, K8sAPIOperation):
            pass

        @self.add_api_base(r'(?:\w+\.)?read_namespaced_pod_log')
        class K8sAPIPodLogOperation(
                StreamingMixin.bind_stream_condition(lambda self: self.args.get('follow')),
                K8sAPIOperation):
            pass

    def add_spec(self, spec):
        super().add_spec(spec)
        for pth, pthdesc in spec.get('paths', {}).items():
            pathparams = pthdesc.get('parameters')
            for method, opdesc in pthdesc.items():
                if method == 'parameters':
                    continue
                self.add_api_desc(pth, pathparams, method, opdesc)

    def add_api_desc(self, pth, pathparams, method, opdesc):
        tag, = opdesc['tags']
        tag = camel_to_snake(tag) # rbacAuthorization_v1
        name = camel_to_snake(opdesc['operationId'])
        if tag in name:
            # 'create_core_v1_namespaced_pod' -> 'core_v1.create_namespaced_pod'
            name = re.sub(f'(\\w+)_{re.escape(tag)}_?(?!$)', f'{tag}.\\1_', name)
        if name in self._api_desc:
            if self._api_desc[name] == (pth, pathparams, method, opdesc):
                return
            raise KeyError(f'Spec for {name} is already registered')
        self._api_desc[name] = pth, pathparams, method, opdesc
        self.apis._declare_lazy(name)

    def operations(self):
        '''Names of every registered operation, sorted.'''
        return sorted(self._api_desc)

    def _get_api_desc(self, name):
        return self._api_desc[name]

    def _register_api(self, api):
        if not issubclass(api, K8sAPIOperation):
            raise TypeError('Only K8sAPIOperation derived APIs can be registered.')
        self.apis[api.name] = api

        return api

    def _get_api(self, name):
        if name not in self._api_desc:
            raise KeyError(name)

        for predicate, base_class in self._api_bases:
            if predicate(self, name):
                break

        else:
            base_class = K8sAPIOperation

        class API(
                base_class,
                registry=self,
                name=name):
            pass

        return API

    def add_api_base(self, predicate, base_class=None):
        '''Register a base class to be used for APIs when predicate matches.

        The predicate signature is:

            predicate(registry, name)

        Predicates are evaluated in the reverse order they were registered in.
        '''

        if isinstance(predicate, str):
            predicate = (lambda regex: lambda reg, name: re.fullmatch(regex, name))(predicate)

        def register(base_class):
            self._api_bases.insert(0, (predicate, base_class))
            return base_class

        if base_class is not None:
            register(base_class)
        else:
            return register
