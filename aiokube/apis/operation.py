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

from inspect import Parameter
from inspect import Signature
import re
import textwrap
from types import MappingProxyType as mappingproxy
from urllib.parse import quote
from urllib.parse import urlencode
from urllib.parse import urlunsplit

from .. import serialization
from ..models.lens import strip_ref


__all__ = '''
    K8sAPIOperation
    StreamingMixin
    query_value
'''.split()


_JSON_TYPE_RE = r'(?:application/json|[^;]+\+json)(?:;.*)?'
_YAML_TYPE_RE = r'(?:application/yaml|[^;]+\+yaml)(?:;.*)?'


class K8sAPIOperation:
    '''One call of an API operation.

    Subclasses are generated per operation from the swagger `paths`.
    Arguments use Python names (`label_selector`, `continue_`); the query
    string uses the wire names.
    '''

    # class attrs
    name = None
    method = None
    path = None
    consumes = frozenset()
    produces = frozenset()
    response_type = None

    k8s_tag = None
    k8s_group = None
    k8s_version = None
    k8s_kind = None
    k8s_action = None

    def __init_subclass__(cls, *, name=None, registry=None, **kw):
        super().__init_subclass__(**kw)

        if not name and not registry:
            return

        path, pathparams, method, opdesc = registry._get_api_desc(name)

        cls.__qualname__ = cls.__name__ = cls.name = name
        cls.__module__ = 'aiokube.apis'
        cls.method = method.upper()
        cls.path = path
        cls.consumes = frozenset(opdesc.get('consumes') or ())
        cls.produces = frozenset(opdesc.get('produces') or ())

        gvk = opdesc.get('x-kubernetes-group-version-kind')
        if gvk:
            cls.k8s_group = gvk['group']
            cls.k8s_version = gvk['version']
            cls.k8s_kind = gvk['kind']
        cls.k8s_action = opdesc.get('x-kubernetes-action')
        cls.k8s_tag, = opdesc['tags']

        params = {}
        for p in (*(pathparams or ()), *opdesc.get('parameters', ())):
            # Operation parameters override path parameters of the same name.
            params[p['in'], p['name']] = p
        params = list(params.values())

        path_param_names = [
                m.group(1)
                for m in re.finditer(r'{(\w+)(?::\*)?}', path) ]
        path_params = {
                p['name']: p for p in params if p['in'] == 'path' }
        body_params = [
                p for p in params if p['in'] == 'body' ]
        if body_params:
            # Expect exactly one.  If there's more than one, we're going home.
            # And by home I mean we're going to crash.
            cls._body_param, = body_params
        else:
            cls._body_param = None

        args = [ path_params[name] for name in path_param_names ]
        if cls._body_param:
            args.append(cls._body_param)

        opts = [ p for p in params if p['in'] == 'query' ]

        cls._wire_names = {
                serialization.local_name(p['name']): p['name']
                for p in (*args, *opts) }
        cls._path_params = tuple(path_param_names)
        cls._query_params = tuple(
                serialization.local_name(p['name']) for p in opts )

        cls.__signature__ = Signature([
                *( Parameter(serialization.local_name(p['name']),
                        Parameter.POSITIONAL_OR_KEYWORD)
                    for p in args ),
                *( Parameter(serialization.local_name(p['name']),
                        Parameter.KEYWORD_ONLY)
                    for p in opts ) ])

        try:
            cls.response_type = strip_ref(
                    opdesc['responses']['200']['schema']['$ref'])
        except KeyError:
            try:
                cls.response_type = opdesc['responses']['200']['schema']['type']
            except KeyError:
                cls.response_type = 'unknown'

        cls.__doc__ = f'{cls.k8s_group} {cls.k8s_action} {cls.k8s_version} {cls.k8s_kind}\n\n'
        if opdesc.get('description'):
            cls.__doc__ += textwrap.fill(opdesc['description']) + '\n\n'
        cls.__doc__ += f'    {cls.method} {path} -> {cls.response_type}\n\n'

        if args:
            cls.__doc__ += 'ARGUMENTS\n\n'
            cls.__doc__ += ''.join( format_param_doc(p) for p in args )

        if opts:
            cls.__doc__ += 'OPTIONS\n\n'
            cls.__doc__ += ''.join( format_param_doc(p) for p in opts )

        registry._register_api(cls)

    # instance attrs
    stream = False
    uri = None
    body = None
    args = None

    def __init__(self, *a, **kw):
        # Not using Signature.bind() here because we want to treat the query
        # params as optional, without using a default.
        bound = self.__signature__.bind_partial(*a, **kw)
        arguments = { k: v for k,v in bound.arguments.items() if v is not None }

        self.args = mappingproxy(arguments.copy())

        if self._body_param:
            body = arguments.pop(
                    serialization.local_name(self._body_param['name']), None)
        else:
            body = None

        try:
            path_ = re.sub(
                    r'{(\w+)(?::\*)?}',
                    lambda m: quote(str(arguments.pop(m.group(1))), safe=''),
                    self.path)
        except KeyError as e:
            raise TypeError(f'missing required argument {e!s}') from None

        query = urlencode([
                (self._wire_names[k], query_value(arguments[k]))
                for k in self._query_params if k in arguments ])
        self.uri = urlunsplit(('', '', path_, query, ''))
        self.body = body

    def __repr__(self):
        return f'<{self.__class__.__name__}: {self.uri}>'

    def __eq__(self, them):
        if isinstance(them, self.__class__):
            return self.uri == them.uri and self.body == them.body
        return NotImplemented

    def __hash__(self):
        return hash((self.__class__, self.uri))

    def replace(self, *a, **kw):
        '''Derive a copy of this operation with some arguments replaced.

        Resuming a watch from a known version:

            op = registry.apis.core_v1.list_namespaced_pod('default', watch=True)
            op.replace(resource_version='10')
            # <core_v1.list_namespaced_pod: /api/v1/namespaces/default/pods?resourceVersion=10&watch=true>
        '''

        bound = self.__signature__.bind_partial(*a, **kw)
        # Remove kwargs set to None.  Unsetting positional args doesn't really
        # make sense, as it would cause later positional args to slide over,
        # and we don't have optional positional args anyway.
        args = {**self.args, **bound.arguments}
        for k,v in bound.kwargs.items():
            if v is None:
                del args[k]
        return self.__class__(**args)

    def default_content_type(self):
        for content_type in ('application/json', 'application/merge-patch+json'):
            if content_type in self.consumes:
                return content_type
        if not self.consumes or '*/*' in self.consumes:
            return 'application/json'
        for content_type in sorted(self.consumes):
            if re.fullmatch(_JSON_TYPE_RE, content_type):
                return content_type
        return None

    def body_as(self, content_type=None):
        '''Returns (headers, body).'''

        if self.body is None:
            raise TypeError('no body')

        if content_type is None:
            content_type = self.default_content_type()
            if content_type is None:
                msg = "missing required keyword argument 'content_type'"
                raise TypeError(msg)

        if self.consumes and not {content_type, '*/*'} & self.consumes:
            msg = (
                    f'{content_type!r} is unsupported or not implemented; '+
                    f'possibilities are: {sorted(self.consumes)}')
            raise ValueError(msg)

        if re.fullmatch(_JSON_TYPE_RE, content_type):
            body = serialization.dumps(self.body, 'json').encode('utf-8')
        elif re.fullmatch(_YAML_TYPE_RE, content_type):
            body = serialization.dumps(self.body, 'yaml').encode('utf-8')
        else:
            raise ValueError(f'cannot encode a body as {content_type!r}')

        headers = {
            'content-type': content_type,
            'content-length': str(len(body)),
        }

        return headers, body


class StreamingMixin:
    stream = True

    @classmethod
    def bind_stream_condition(cls, condition):
        class StreamingMixin(cls):
            @property
            def stream(self):
                return bool(condition(self))
        return StreamingMixin


def query_value(value):
    '''
    >>> query_value(True)
    'true'
    '''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def format_param_doc(desc):
    if 'schema' in desc:
        type_ = strip_ref(desc['schema'].get('$ref', 'object'))
    else:
        type_ = desc.get('type', 'object')
    pname = serialization.local_name(desc['name'])
    if desc.get('description'):
        doc = desc['description']
        doc = textwrap.fill(
                doc, 64,
                # Avoid breaking up urls.
                break_long_words=False,
                break_on_hyphens=False)
        doc = textwrap.indent(doc, '        ')
        return f'    {pname} ({type_}):\n{doc}\n\n'
    return f'    {pname} ({type_})\n\n'
