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

import argparse
import asyncio
import fnmatch
import logging
import sys

from .apis import APIRegistry
from .client import KubeClient
from .data import DEFAULT_RELEASE
from .errors import K8sError
from .generic import dig


def main(argv=None):
    parser = argparse.ArgumentParser(prog='python -m aiokube')
    parser.add_argument('-v', '--verbose', action='store_true')
    parser.add_argument('--release', default=DEFAULT_RELEASE,
            help='bundled release catalog to load (default %(default)s)')
    parser.add_argument('--spec', action='append', default=[], metavar='SWAGGER_JSON',
            help='additional swagger.json to load')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('models', help='list models')
    p.add_argument('pattern', nargs='?', default='*')

    p = sub.add_parser('describe', help='describe a model or operation')
    p.add_argument('name')

    p = sub.add_parser('operations', help='list API operations')
    p.add_argument('pattern', nargs='?', default='*')

    p = sub.add_parser('stubs', help='write a .pyi describing every model')
    p.add_argument('-o', '--output', type=argparse.FileType('w'), default='-')

    p = sub.add_parser('watch', help='print watch events for an API path')
    p.add_argument('path', help='e.g. /api/v1/namespaces/default/pods')
    p.add_argument('--kubeconfig')
    p.add_argument('--context')
    p.add_argument('--resource-version')

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    registry = APIRegistry(release=args.release)
    for pth in args.spec:
        registry.load_spec(pth)

    if args.command == 'models':
        for alias, name in registry.definitions():
            if registry.is_model(name) and fnmatch.fnmatchcase(alias, args.pattern):
                print(alias)

    elif args.command == 'operations':
        for name in registry.operations():
            if fnmatch.fnmatchcase(name, args.pattern):
                api = registry.apis[name]
                print(f'{name:60} {api.method:6} {api.path}')

    elif args.command == 'describe':
        if args.name in registry.models:
            obj = registry.models[args.name]
        elif args.name in registry.apis:
            obj = registry.apis[args.name]
        else:
            print(f'{args.name}: no such model or operation', file=sys.stderr)
            return 1
        print(getattr(obj, '__qualname__', args.name))
        print()
        print(obj.__doc__ or '')

    elif args.command == 'stubs':
        args.output.write(render_stubs(registry))

    elif args.command == 'watch':
        try:
            return asyncio.run(watch(args, registry))
        except KeyboardInterrupt:
            return 1
        except K8sError as e:
            print(f'error: {e}', file=sys.stderr)
            return 1

    return 0


async def watch(args, registry):
    if args.kubeconfig or args.context:
        client = KubeClient.from_kubeconfig(
                args.kubeconfig, args.context, registry=registry)
    else:
        client = KubeClient.autoconfigure(registry=registry)

    async with client:
        async for ev in client.watch(args.path, resource_version=args.resource_version):
            name = dig(ev.object, 'metadata', 'name') or dig(ev.object, 'message') or ''
            namespace = dig(ev.object, 'metadata', 'namespace') or ''
            print(f'{ev.type.value:9} {name:55}  {namespace}')


def render_stubs(registry):
    '''Type stubs for the registry's models, grouped by alias.'''

    groups = {}
    for alias, name in registry.definitions():
        if alias.count('.') != 1 or not registry.is_model(name):
            continue
        group, _, kind = alias.partition('.')
        groups.setdefault(group, []).append(registry.models[name])

    lines = [
        '# Generated by `python -m aiokube stubs`.',
        'from datetime import datetime',
        'from typing import Any, Dict, MutableMapping, MutableSequence, Optional, Union',
        '',
        'from aiokube.models import ModelBase',
        '',
    ]
    for group in sorted(groups):
        lines += ['', f'class {group}:']
        for model in groups[group]:
            hints = [
                (pname, getattr(model, pname).lens.type_hint())
                for pname in model._fields ]
            lines.append(f'    class {model.__name__}(ModelBase):')
            for pname, hint in hints:
                lines.append(f'        {pname}: Optional[{hint}]')
            params = ''.join(
                    f', {pname}: Optional[{hint}] = ...' for pname, hint in hints )
            star = ', *' if hints else ''
            lines.append(f'        def __init__(self{star}{params}) -> None: ...')
            lines.append('')
    return '\n'.join(lines) + '\n'


if __name__ == '__main__':
    sys.exit(main())
