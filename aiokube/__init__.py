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

'''asyncio Kubernetes API client with a schema derived model catalog.'''

from .apis import APIRegistry
from .client import KubeClient
from .client import build_list_params
from .errors import *
from .generic import GenericResource
from .generic import ResourceList
from .models import ModelBase
from .models import ModelRegistry
from .serialization import dumps
from .serialization import load_manifests
from .serialization import loads
from .watch import WatchEvent
from .watch import WatchEventType


__version__ = '0.2.0'
