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

from collections.abc import Mapping
from datetime import datetime
import json
import logging
import re

from ..nestedns import NS
from ..data import load as load_data

from .base import ModelBase
from .base import LensProp
from .lens import strip_ref
from .list import ListProxy
from .mapping import MapProxy


__all__ = '''
    ModelRegistry
    ModelBase
    LensProp
    ListProxy
    MapProxy
    model_alias
'''.split()


_logger = logging.getLogger(__name__)


# Python types standing in for definitions that aren't objects.
_SCALAR_TYPES = {
    'string': str,
    'integer': int,
    'number': float,
    'boolean': bool,
    'object': dict,
}


def model_alias(name):
    '''Short group/version alias for a definition name.

    >>> model_alias('io.k8s.api.apps.v1.Deployment')
    'apps_v1.Deployment'
    >>> model_alias('io.k8s.apimachinery.pkg.apis.meta.v1.ObjectMeta')
    'meta_v1.ObjectMeta'
    >>> model_alias('io.k8s.apimachinery.pkg.api.resource.Quantity')
    'resource.Quantity'
    '''

    m = (re.fullmatch(r'io\.k8s\.api\.([\w-]+)\.(v\w+)\.(\w+)', name)
         or re.fullmatch(r'.+\.pkg\.apis\.([\w-]+)\.(v\w+)\.(\w+)', name))
    if m:
        group, version, kind = m.groups()
        return f'{group.replace("-", "_")}_{version}.{kind}'

    parts = name.rsplit('.', 2)
    if len(parts) == 3:
        return f'{parts[1]}.{parts[2]}'.replace('-', '_')
    return None


class GVKIndex(Mapping):
    '''Models by `(group, version, kind)`.'''

    def __init__(self, registry):
        self._registry = registry

    def __getitem__(self, gvk):
        name = self._registry._gvk_names[tuple(gvk)]
        return self._registry.models[name]

    def __iter__(self):
        return iter(self._registry._gvk_names)

    def __len__(self):
        return len(self._registry._gvk_names)

    def __contains__(self, gvk):
        return tuple(gvk) in self._registry._gvk_names


class ModelRegistry:
    '''Registry of swagger spec derived models.

    >>> registry = ModelRegistry(release='1.34')
    >>> registry.models.apps_v1.Deployment
    <class 'aiokube.models.apps_v1.Deployment'>
    >>> registry.models_by_gvk['apps', 'v1', 'Deployment']
    <class 'aiokube.models.apps_v1.Deployment'>
    '''

    def __init__(self, release=None):
        self.models = NS(missing=self._get_model)
        self._model_desc = {}
        self._aliases = {}
        self.models_by_gvk = GVKIndex(self)
        self._gvk_names = {}

        if release is not None:
            self.load_release_spec(release)

    def load_spec(self, pth):
        with open(pth) as fh:
            spec = json.load(fh)
            self.add_spec(spec)

    def load_release_spec(self, release):
        spec = json.loads(load_data(f'release-{release}.json'))
        self.add_spec(spec)

    def add_spec(self, spec):
        for name,desc in spec['definitions'].items():
            self.add_model_desc(name, desc)

    def add_model_desc(self, name, desc):
        if name in self._model_desc:
            # Some models appear in multiple APIs, if the specs don't differ,
            # then ignore it.
            if desc == self._model_desc[name]:
                return
            raise KeyError(f'Spec for {name} is already registered')
        self._model_desc[name] = desc
        self.models._declare_lazy(name)

        alias = model_alias(name)
        if alias is not None:
            try:
                self.models._declare_alias(alias, name)
            except KeyError:
                _logger.debug('Alias %s for %s is taken', alias, name)
            else:
                self._aliases[name] = alias

        for d in desc.get('x-kubernetes-group-version-kind') or ():
            gvk_name = d['group'], d['version'], d['kind']
            self._gvk_names[gvk_name] = name

    def alias_of(self, name):
        return self._aliases.get(name)

    def definitions(self):
        '''Generate `(alias, name)` for every registered definition.'''
        for name in sorted(self._model_desc):
            yield self._aliases.get(name, name), name

    def model_for(self, api_version, kind):
        '''The model for an `apiVersion` and `kind`, or None.'''
        group, _, version = api_version.rpartition('/')
        return self.models_by_gvk.get((group, version, kind))

    def _get_model_desc(self, name, *, resolve=True):
        name = strip_ref(name)
        desc = self._model_desc[name]
        if resolve:
            while isinstance(desc.get('$ref'), str):
                desc = self._get_model_desc(desc['$ref'], resolve=False)
        return desc

    def _register_model(self, model):
        if not issubclass(model, ModelBase):
            raise TypeError('Only ModelBase derived models can be registered.')
        self.models[model._name] = model
        return model

    def _get_model(self, name):
        desc = self._get_model_desc(name, resolve=False)

        if isinstance(desc.get('$ref'), str):
            return self.models[strip_ref(desc['$ref'])]

        if not _is_model_desc(desc):
            if desc.get('format') == 'date-time':
                return datetime
            if desc.get('format') == 'int-or-string':
                return object
            return _SCALAR_TYPES.get(desc.get('type'), object)

        class Model(ModelBase, registry=self, name=name):
            __slots__ = ()

        return Model

    def _is_model(self, name):
        return _is_model_desc(self._get_model_desc(name))

    def is_model(self, name):
        name = self.models.target(name)
        return name in self._model_desc and self._is_model(name)


def _is_model_desc(desc):
    return isinstance(desc.get('properties'), dict)
