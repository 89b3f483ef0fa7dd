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

from .config_maps import ConfigMaps
from .deployments import Deployments
from .namespaces import Namespaces
from .pods import Pods
from .secrets import Secrets
from .services import Services


__all__ = '''
    V1
    Pods
    Deployments
    Services
    Namespaces
    ConfigMaps
    Secrets
'''.split()


class V1:
    '''The core and apps/v1 resources most programs need.

        await k8s.v1.deployments.scale('web', 3, 'default')
    '''

    def __init__(self, client):
        self.pods = Pods(client)
        self.deployments = Deployments(client)
        self.services = Services(client)
        self.config_maps = ConfigMaps(client)
        self.secrets = Secrets(client)
        self.namespaces = Namespaces(client)
