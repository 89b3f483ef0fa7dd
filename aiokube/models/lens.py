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
from datetime import timedelta
from datetime import timezone
import re

from .list import ListProxy
from .mapping import MapProxy


_TYPE_HINTS = {
    'string': 'str',
    'integer': 'int',
    'number': 'float',
    'boolean': 'bool',
    'object': 'Dict[str, Any]',
}


def strip_ref(ref):
    return re.sub(r'^#/definitions/', '', ref)


def mklens(pdesc, *, registry):
    if isinstance(pdesc.get('$ref'), str):
        ref = strip_ref(pdesc['$ref'])
        if registry._is_model(ref):
            return ModelLens(pdesc, registry=registry)

        # Scalar definitions (Quantity, Time, IntOrString, ...) collapse into
        # the field, keeping the field's own description.
        desc = dict(registry._get_model_desc(ref))
        if 'description' in pdesc:
            desc['description'] = pdesc['description']
        return mklens(desc, registry=registry)

    type_ = pdesc.get('type')
    if type_ == 'array':
        itemlens = mklens(pdesc.get('items') or {}, registry=registry)
        return ListLens(pdesc, itemlens=itemlens)

    if type_ == 'object' and isinstance(pdesc.get('additionalProperties'), dict):
        valuelens = mklens(pdesc['additionalProperties'], registry=registry)
        return MapLens(pdesc, valuelens=valuelens)

    if type_ == 'string' and pdesc.get('format') == 'date-time':
        return DateTimeLens(pdesc)

    return SimpleLens(pdesc)


class SimpleLens:
    def __init__(self, desc):
        if desc.get('description') is not None:
            self.__doc__ = desc['description']
        self._type = desc.get('type')
        self._format = desc.get('format')

    def __repr__(self):
        if self._format:
            return f'<{self.__class__.__name__} {self._type}: {self._format}>'
        return f'<{self.__class__.__name__} {self._type}>'

    def project(self, data):
        return data

    def unwrap(self, value):
        return value

    def type_hint(self):
        if self._format == 'int-or-string':
            return 'Union[int, str]'
        return _TYPE_HINTS.get(self._type, 'Any')


class DateTimeLens(SimpleLens):
    '''RFC 3339 timestamps on the wire, aware datetimes in Python.'''

    def project(self, data):
        if isinstance(data, str):
            parsed = parse_time(data)
            if parsed is not None:
                return parsed
        return data

    def unwrap(self, value):
        if isinstance(value, datetime):
            return format_time(value)
        if isinstance(value, str):
            return value
        raise TypeError(
                f'expected datetime or str, got {value.__class__.__name__}')

    def type_hint(self):
        return 'datetime'


class ModelLens:
    def __init__(self, desc, *, registry):
        if 'description' in desc:
            self.__doc__ = desc['description']
        self._models = registry.models
        self._ref = strip_ref(desc['$ref'])
        self._model = None

    def __repr__(self):
        return f'<{self.__class__.__name__} {self._ref}>'

    @property
    def model(self):
        if self._model is None:
            self._model = self._models[self._ref]
        return self._model

    def project(self, data):
        if not isinstance(data, dict):
            return data
        return self.model._project(data)

    def unwrap(self, value):
        model = self.model
        if isinstance(value, model):
            return value._data
        if isinstance(value, dict):
            return value
        if isinstance(value, Mapping):
            return dict(value)
        raise TypeError(
                f'expected {model.__qualname__} or a mapping, '
                f'got {value.__class__.__name__}')

    def type_hint(self):
        qualname = self.model.__qualname__
        if qualname.count('.') != 1:
            return 'Any'
        return qualname


class ListLens:
    def __init__(self, desc, *, itemlens):
        self._itemlens = itemlens
        self._bound = ListProxy(itemlens=itemlens)
        if 'description' in desc:
            self.__doc__ = desc['description']

    def __repr__(self):
        return f'<{self.__class__.__name__} {self._itemlens}>'

    def project(self, data):
        if not isinstance(data, list):
            return data
        return self._bound._project(data)

    def unwrap(self, value):
        return self._bound._unwrap(value)

    def type_hint(self):
        return f'MutableSequence[{self._itemlens.type_hint()}]'


class MapLens:
    def __init__(self, desc, *, valuelens):
        self._valuelens = valuelens
        self._bound = MapProxy(valuelens=valuelens)
        if 'description' in desc:
            self.__doc__ = desc['description']

    def __repr__(self):
        return f'<{self.__class__.__name__} {self._valuelens}>'

    def project(self, data):
        if not isinstance(data, dict):
            return data
        return self._bound._project(data)

    def unwrap(self, value):
        return self._bound._unwrap(value)

    def type_hint(self):
        return f'MutableMapping[str, {self._valuelens.type_hint()}]'


_TIME_RE = re.compile(
        r'(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?'
        r'([Zz]|[+-]\d{2}:\d{2})')


def parse_time(text):
    '''Parse an RFC 3339 timestamp, returning None when it isn't one.

    >>> parse_time('2024-01-02T03:04:05Z')
    datetime.datetime(2024, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)
    '''

    m = _TIME_RE.fullmatch(text)
    if m is None:
        return None
    date, time, fraction, offset = m.groups()
    try:
        value = datetime.strptime(f'{date}T{time}', '%Y-%m-%dT%H:%M:%S')
    except ValueError:
        return None
    if fraction:
        value = value.replace(microsecond=int(fraction[:6].ljust(6, '0')))
    if offset in ('Z', 'z'):
        tz = timezone.utc
    else:
        sign = -1 if offset[0] == '-' else 1
        hours, minutes = offset[1:].split(':')
        tz = timezone(sign*timedelta(hours=int(hours), minutes=int(minutes)))
    return value.replace(tzinfo=tz)


def format_time(value):
    '''Format a datetime as RFC 3339 in UTC.  Naive values are taken as UTC.

    >>> format_time(datetime(2024, 1, 2, 3, 4, 5))
    '2024-01-02T03:04:05Z'
    '''

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    text = value.strftime('%Y-%m-%dT%H:%M:%S')
    if value.microsecond:
        text += f'.{value.microsecond:06d}'
    return text + 'Z'
