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

import os
from pathlib import Path

import yaml

from .errors import ConfigError


__all__ = '''
    KubeConfig
    default_kubeconfig_path
'''.split()


_FILE_KEYS = {
    'cluster': ('certificate-authority',),
    'user': ('client-certificate', 'client-key', 'tokenFile'),
}


def default_kubeconfig_path():
    kubeconfig = os.environ.get('KUBECONFIG')
    if kubeconfig:
        # Merging several files isn't supported, use the first one.
        first = next(( p for p in kubeconfig.split(os.pathsep) if p ), None)
        if first:
            return Path(first).expanduser()
    return Path.home().joinpath('.kube/config')


class KubeConfig:
    '''A parsed kubeconfig file.'''

    def __init__(self, doc, path=None):
        if not isinstance(doc, dict):
            raise ConfigError(f'{path or "kubeconfig"} is not a mapping')
        self.doc = doc
        self.path = Path(path) if path is not None else None

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.path}>'

    @classmethod
    def load(cls, path=None):
        if path is None:
            path = default_kubeconfig_path()
        path = Path(path)

        try:
            with path.open() as fh:
                doc = yaml.safe_load(fh)
        except FileNotFoundError:
            raise ConfigError(f'kubeconfig {path} does not exist') from None
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f'cannot read kubeconfig {path}: {e}') from e

        return cls(doc or {}, path)

    @property
    def current_context(self):
        return self.doc.get('current-context') or None

    def context_names(self):
        return [ d.get('name') for d in self.doc.get('contexts') or () ]

    def _find(self, section, name, key):
        for d in self.doc.get(section) or ():
            if d.get('name') == name:
                return dict(d.get(key) or {})
        where = f' in {self.path}' if self.path else ''
        raise ConfigError(f'{key.capitalize()} {name!r} was not found{where}')

    def resolve_path(self, value):
        '''Resolve a file name against the kubeconfig's directory.'''
        value = Path(value).expanduser()
        if self.path is not None and not value.is_absolute():
            value = self.path.parent/value
        return str(value)

    def resolve(self, context=None):
        '''Returns `(context, cluster, user)` dicts for a context.

        File references are resolved to absolute paths.
        '''

        if context is None:
            context = self.current_context
            if context is None:
                raise ConfigError('No context given and no current-context set')

        ctx = self._find('contexts', context, 'context')
        cluster = self._find('clusters', ctx.get('cluster'), 'cluster')
        user = {}
        if ctx.get('user') is not None:
            user = self._find('users', ctx['user'], 'user')

        for section, d in (('cluster', cluster), ('user', user)):
            for key in _FILE_KEYS[section]:
                if d.get(key):
                    d[key] = self.resolve_path(d[key])

        if not cluster.get('server'):
            raise ConfigError(f'Cluster {ctx.get("cluster")!r} has no server')

        return ctx, cluster, user
