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

from ..errors import K8sError
from ..generic import dig

from .base import KindResource


def pod_ready(pod):
    '''All containers report ready (and there is at least one).'''
    statuses = dig(pod, 'status', 'containerStatuses')
    return bool(statuses) and all( s.get('ready') for s in statuses )


def pod_running(pod):
    return dig(pod, 'status', 'phase') == 'Running'


class Pods(KindResource):
    plural = 'pods'
    kind = 'Pod'

    async def is_ready(self, name, namespace=None):
        try:
            return pod_ready(await self.read(name, namespace))
        except K8sError:
            return False

    async def is_running(self, name, namespace=None):
        try:
            return pod_running(await self.read(name, namespace))
        except K8sError:
            return False

    async def wait_until_ready(self, name, namespace=None, *, timeout=300, interval=1):
        return await self._wait_for(
                name, namespace, pod_ready,
                timeout=timeout, interval=interval, what='to be ready')

    async def wait_until_running(self, name, namespace=None, *, timeout=300, interval=1):
        return await self._wait_for(
                name, namespace, pod_running,
                timeout=timeout, interval=interval, what='to be running')

    def _log_params(self, container, tail_lines, follow=None, **extra):
        return {
            'container': container,
            'follow': follow,
            'tailLines': tail_lines,
            **extra,
        }

    async def logs(
            self, name, namespace=None, *,
            container=None,
            tail_lines=None,
            previous=None,
            since_seconds=None,
            timestamps=None):
        '''The pod's log as one string.'''
        params = self._log_params(
                container, tail_lines,
                previous=previous,
                sinceSeconds=since_seconds,
                timestamps=timestamps)
        return await self.client.get(
                self.path(self._ns(namespace), name, 'log'), params,
                accept='*/*')

    async def follow_logs(self, name, namespace=None, *, container=None, tail_lines=None):
        '''Generate log lines as they are written.'''
        params = self._log_params(container, tail_lines, follow=True)
        async for line in self.client.stream(
                'GET', self.path(self._ns(namespace), name, 'log'),
                params=params,
                accept='*/*'):
            yield line.decode('utf-8', 'replace')
