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

'''JSON and YAML encoding for models and plain wire data.

Models only need to provide `to_dict()` and a `from_dict()` classmethod;
this module does not import them.
'''

from collections.abc import Mapping
from collections.abc import Sequence
import json
import keyword
import re

import yaml

from .errors import SerializationError


__all__ = '''
    camel_to_snake
    snake_to_camel
    local_name
    dumps
    loads
    dump_manifests
    load_manifests
'''.split()


def camel_to_snake(name):
    '''
    >>> camel_to_snake('apiVersion')
    'api_version'
    >>> camel_to_snake('podIPs')
    'pod_i_ps'
    >>> camel_to_snake('x-kubernetes-list-type')
    'x_kubernetes_list_type'
    '''

    name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
    name = re.sub(r'([a-z\d])([A-Z])', r'\1_\2', name)
    return re.sub(r'[-.]', '_', name).lower()


def snake_to_camel(name):
    '''
    >>> snake_to_camel('api_version')
    'apiVersion'
    '''

    head, *rest = name.rstrip('_').split('_')
    return head + ''.join( part[:1].upper() + part[1:] for part in rest )


def local_name(wire_name):
    '''Python attribute name for a wire field name.

    >>> local_name('$ref')
    'ref_'
    >>> local_name('continue')
    'continue_'
    '''

    suffix = ''
    if wire_name.startswith('$'):
        wire_name = wire_name[1:]
        suffix = '_'
    name = camel_to_snake(wire_name) + suffix
    if keyword.iskeyword(name):
        name += '_'
    return name


class _Loader(yaml.SafeLoader):
    '''SafeLoader that keeps timestamps as strings.'''


_Loader.yaml_implicit_resolvers = {
    first: [ (tag, regexp) for tag, regexp in resolvers
             if tag != 'tag:yaml.org,2002:timestamp' ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items() }


def _wire(obj):
    if hasattr(obj, 'to_dict'):
        return obj.to_dict()
    if isinstance(obj, Mapping):
        return { k: _wire(v) for k, v in obj.items() }
    if isinstance(obj, Sequence) and not isinstance(obj, (str, bytes)):
        return [ _wire(v) for v in obj ]
    return obj


def dumps(obj, fmt='json', **kw):
    data = _wire(obj)
    if fmt == 'json':
        return json.dumps(data, **kw)
    if fmt == 'yaml':
        kw.setdefault('default_flow_style', False)
        kw.setdefault('sort_keys', False)
        return yaml.dump(data, Dumper=yaml.SafeDumper, **kw)
    raise ValueError(f'unknown format {fmt!r}')


def dump_manifests(objs):
    '''Multi-document YAML for a sequence of objects.'''

    return yaml.dump_all(
            [ _wire(obj) for obj in objs ],
            Dumper=yaml.SafeDumper,
            default_flow_style=False,
            sort_keys=False)


def _parse(text, fmt):
    try:
        if fmt == 'json':
            return json.loads(text)
        if fmt == 'yaml':
            return yaml.load(text, Loader=_Loader)
    except (ValueError, yaml.YAMLError) as e:
        raise SerializationError(f'invalid {fmt}: {e}') from e
    raise ValueError(f'unknown format {fmt!r}')


def loads(text, model=None, fmt='json'):
    data = _parse(text, fmt)
    if model is None:
        return data
    return model.from_dict(data)


def _guess_format(text):
    if isinstance(text, bytes):
        text = text.decode('utf-8')
    if text.lstrip()[:1] in ('{', '['):
        return 'json'
    return 'yaml'


def load_manifests(text, registry, fmt=None):
    '''Load a stream of manifests, resolving each document by its GVK.

    Documents of unknown kinds are returned as plain dicts.  Empty YAML
    documents are skipped.
    '''

    if fmt is None:
        fmt = _guess_format(text)

    if fmt == 'json':
        data = _parse(text, fmt)
        docs = data if isinstance(data, list) else [data]
    elif fmt == 'yaml':
        try:
            docs = list(yaml.load_all(text, Loader=_Loader))
        except yaml.YAMLError as e:
            raise SerializationError(f'invalid yaml: {e}') from e
    else:
        raise ValueError(f'unknown format {fmt!r}')

    result = []
    for doc in docs:
        if doc is None:
            continue
        if not isinstance(doc, Mapping):
            raise SerializationError(
                    f'expected a mapping, got {doc.__class__.__name__}')
        model = None
        if 'apiVersion' in doc and 'kind' in doc:
            model = registry.model_for(doc['apiVersion'], doc['kind'])
        result.append(doc if model is None else model.from_dict(doc))
    return result
