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
from collections.abc import MutableMapping


class MapProxy(MutableMapping):
    '''Live mapping view over wire data (`additionalProperties`).'''

    __slots__ = '_data', '_valuelens'

    def __init__(self, mapping=None, *, valuelens):
        self._valuelens = valuelens
        self._data = {}
        if mapping is not None:
            self.update(mapping)

    def _project(self, data):
        self = self.__class__(valuelens=self._valuelens)
        if data is not None:
            self._data = data
        return self

    def _unwrap(self, value):
        if isinstance(value, MapProxy):
            return value._data
        if not isinstance(value, Mapping):
            raise TypeError(
                    f'expected a mapping, got {value.__class__.__name__}')
        vunwrap = self._valuelens.unwrap
        return { k: vunwrap(v) for k,v in value.items() }

    def __getitem__(self, key):
        return self._valuelens.project(self._data[key])

    def __setitem__(self, key, value):
        self._data[key] = self._valuelens.unwrap(value)

    def __delitem__(self, key):
        del self._data[key]

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __contains__(self, key):
        return key in self._data

    def __eq__(self, them):
        if isinstance(them, MapProxy):
            return self._data == them._data
        if not isinstance(them, Mapping):
            return NotImplemented
        return dict(self.items()) == dict(them.items())

    __hash__ = None

    def __repr__(self):
        return repr(dict(self.items()))

    def copy(self):
        return self._project(self._data.copy())
