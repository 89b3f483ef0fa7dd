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

import base64

from ..generic import dig

from .base import KindResource


class Secrets(KindResource):
    plural = 'secrets'
    kind = 'Secret'

    async def create(self, obj, namespace=None):
        return await self._create(obj, namespace)

    @staticmethod
    def decoded(secret):
        '''The secret's values as bytes, `stringData` taking precedence.'''
        values = {
            k: base64.b64decode(v)
            for k,v in (dig(secret, 'data') or {}).items() }
        for k,v in (dig(secret, 'stringData') or {}).items():
            values[k] = v.encode('utf-8')
        return values
