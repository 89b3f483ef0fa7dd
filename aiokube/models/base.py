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
import copy
import textwrap
from types import MappingProxyType as mappingproxy

from .. import serialization
from ..errors import SerializationError

from .lens import mklens


class ModelBase:
    '''Base of all schema derived models.

    Instances are thin wrappers around wire data (`_data`), every property
    is a lens that projects a wire value into Python and unwraps assigned
    values back into wire format.
    '''

    __slots__ = '_data',

    # class attrs
    _name = None
    _desc = None
    _fields = mappingproxy({})
    _boilerplate = mappingproxy({})

    def __init_subclass__(cls, *, registry, name, **kw):
        super().__init_subclass__(**kw)
        desc = registry._get_model_desc(name)
        kind = name.rpartition('.')[2]
        cls.__name__ = kind
        cls.__qualname__ = registry.alias_of(name) or name
        cls.__module__ = 'aiokube.models'
        cls._name = name
        cls._desc = desc

        if 'description' in desc:
            doc = textwrap.fill(desc["description"])
        else:
            doc = "Doesn't look like anything to me."
        cls.__doc__ = f'{doc}\n\n'

        fields = {}
        for wname,pdesc in desc['properties'].items():
            pname = serialization.local_name(wname)
            if hasattr(ModelBase, pname):
                pname += '_'
            if pname in fields:
                raise ValueError(
                        f'{name}: {fields[pname]!r} and {wname!r} both map '
                        f'to {pname!r}')
            fields[pname] = wname

            lens = mklens(pdesc, registry=registry)
            prop = LensProp(lens, wname, pdesc)
            setattr(cls, pname, prop)
            # Apparently __init_subclass__ is too late for __set_name__ to
            # happen.  Have to do it manually.
            prop.__set_name__(cls, pname)
            if lens.__doc__:
                doc = lens.__doc__
                doc = textwrap.fill(
                        doc, 66,
                        # Avoid breaking up urls.
                        break_long_words=False,
                        break_on_hyphens=False)
                doc = textwrap.indent(doc, '    ')
                cls.__doc__ += f'{pname} ({wname}):\n{doc}\n\n'
            else:
                cls.__doc__ += f'{pname} ({wname})\n'

        cls._fields = mappingproxy(fields)

        gvks = desc.get('x-kubernetes-group-version-kind') or ()
        if len(gvks) == 1 and {'apiVersion', 'kind'} <= set(fields.values()):
            gvk, = gvks
            api_version = gvk['version']
            if gvk['group']:
                api_version = f'{gvk["group"]}/{api_version}'
            cls._boilerplate = mappingproxy(
                    {'apiVersion': api_version, 'kind': gvk['kind']})

        registry._register_model(cls)

    def __init__(self, **kw):
        # values in kw are cooked
        self._data = dict(self._boilerplate)
        for k,v in kw.items():
            if k not in self._fields:
                raise TypeError(
                        f'{self.__class__.__name__}() got an unexpected '
                        f'keyword argument {k!r}')
            setattr(self, k, v)

    def __getstate__(self):
        return self._data.copy()

    def __setstate__(self, data):
        self._data = data

    @classmethod
    def _project(cls, data):
        # elements of data are raw
        self = object.__new__(cls)
        self._data = {} if data is None else data
        return self

    @classmethod
    def _unwrap(cls, value):
        return value._data

    def to_dict(self):
        return copy.deepcopy(self._data)

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, Mapping):
            raise SerializationError(
                    f'{cls.__qualname__} expects a mapping, '
                    f'got {data.__class__.__name__}')
        return cls._project(copy.deepcopy(dict(data)))

    def to_json(self, **kw):
        return serialization.dumps(self, 'json', **kw)

    @classmethod
    def from_json(cls, text):
        return serialization.loads(text, cls, 'json')

    def to_yaml(self):
        return serialization.dumps(self, 'yaml')

    @classmethod
    def from_yaml(cls, text):
        return serialization.loads(text, cls, 'yaml')

    def __repr__(self):
        preprs = []
        for pname, wname in self._fields.items():
            if wname in self._data:
                try:
                    pval = getattr(self, pname)
                    preprs.append(f'{pname}={pval!r}')
                except Exception as e:
                    preprs.append(f'{pname}! {e!r}')

        return f'{self.__class__.__name__}({", ".join(preprs)})'

    def __eq__(self, them):
        if self.__class__ == them.__class__:
            return self._data == them._data
        return NotImplemented

    __hash__ = None


class LensProp:
    def __init__(self, lens, wire_name, pdesc):
        self.lens = lens
        self.wire_name = wire_name
        self.name = None
        if 'description' in pdesc:
            self.__doc__ = textwrap.fill(pdesc['description'])

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.name} ({self.wire_name}): {self.lens!r}>'

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, them, owner):
        if them is None:
            return self
        data = them._data.get(self.wire_name)
        if data is None:
            return None
        return self.lens.project(data)

    def __delete__(self, them):
        them._data.pop(self.wire_name, None)

    def __set__(self, them, value):
        if value is None:
            self.__delete__(them)
        else:
            them._data[self.wire_name] = self.lens.unwrap(value)
