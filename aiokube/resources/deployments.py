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

from datetime import datetime
from datetime import timezone

from ..errors import K8sError
from ..generic import dig
from ..models.lens import format_time

from .base import KindResource


RESTARTED_AT_ANNOTATION = 'kubectl.kubernetes.io/restartedAt'


def deployment_replicas(deployment):
    '''`(desired, ready, updated)` replica counts, missing counts are 0.'''
    return (
        dig(deployment, 'spec', 'replicas') or 0,
        dig(deployment, 'status', 'readyReplicas') or 0,
        dig(deployment, 'status', 'updatedReplicas') or 0,
    )


def deployment_ready(deployment):
    if dig(deployment, 'status') is None:
        return False
    desired, ready, updated = deployment_replicas(deployment)
    return ready == desired and updated == desired


class Deployments(KindResource):
    group = 'apps'
    plural = 'deployments'
    kind = 'Deployment'

    async def scale(self, name, replicas, namespace=None):
        patch = {'spec': {'replicas': replicas}}
        return await self._patch(name, patch, namespace, patch_type='merge')

    async def restart(self, name, namespace=None):
        '''Trigger a rollout by stamping the pod template, like `kubectl rollout restart`.'''
        now = datetime.now(timezone.utc).replace(microsecond=0)
        patch = {
            'spec': {
                'template': {
                    'metadata': {
                        'annotations': {
                            RESTARTED_AT_ANNOTATION: format_time(now),
                        },
                    },
                },
            },
        }
        return await self._patch(name, patch, namespace, patch_type='strategic')

    async def is_ready(self, name, namespace=None):
        try:
            deployment = await self.read(name, namespace)
        except K8sError:
            return False
        if dig(deployment, 'status') is None:
            return False
        desired, ready, _ = deployment_replicas(deployment)
        return ready == desired

    async def replicas(self, name, namespace=None):
        deployment = await self.read(name, namespace)
        return dig(deployment, 'spec', 'replicas') or 0

    async def wait_until_ready(self, name, namespace=None, *, timeout=300, interval=2):
        return await self._wait_for(
                name, namespace, deployment_ready,
                timeout=timeout, interval=interval, what='to be ready')
