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

import asyncio
import enum
import json
import logging

import aiohttp

from .errors import Gone
from .errors import K8sError
from .errors import SerializationError
from .errors import ServerError


__all__ = '''
    WatchEventType
    WatchEvent
    watch
'''.split()


_logger = logging.getLogger(__name__)

MAX_BACKOFF = 30


class WatchEventType(enum.Enum):
    ADDED = 'ADDED'
    MODIFIED = 'MODIFIED'
    DELETED = 'DELETED'
    BOOKMARK = 'BOOKMARK'
    ERROR = 'ERROR'


class WatchEvent:
    '''One event of a watch stream.

    Unpacks as `(type, object)`:

    >>> ev_type, obj = WatchEvent.parse(b'{"type": "ADDED", "object": {}}')
    >>> ev_type
    <WatchEventType.ADDED: 'ADDED'>
    '''

    __slots__ = 'type', 'object'

    def __init__(self, type, object):
        self.type = WatchEventType(type)
        self.object = object

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.type.value} {self.object!r}>'

    def __iter__(self):
        return iter((self.type, self.object))

    def __eq__(self, them):
        if isinstance(them, WatchEvent):
            return (self.type, self.object) == (them.type, them.object)
        return NotImplemented

    __hash__ = None

    @classmethod
    def parse(cls, line, load=None):
        try:
            data = json.loads(line)
            type_ = WatchEventType(data['type'])
        except (ValueError, KeyError, TypeError) as e:
            raise SerializationError(f'invalid watch event: {e}') from e
        obj = data.get('object')
        if load is not None and obj is not None:
            obj = load(obj)
        return cls(type_, obj)

    @property
    def added(self):
        return self.type is WatchEventType.ADDED

    @property
    def modified(self):
        return self.type is WatchEventType.MODIFIED

    @property
    def deleted(self):
        return self.type is WatchEventType.DELETED

    @property
    def bookmark(self):
        return self.type is WatchEventType.BOOKMARK

    @property
    def error(self):
        return self.type is WatchEventType.ERROR


def _field(obj, *keys):
    data = getattr(obj, '_data', obj)
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _newer(version, than):
    # Resource versions are documented as opaque, but they are an etcd
    # serial in practice and a watch has no other way to resume.
    try:
        return int(version) > int(than)
    except (TypeError, ValueError):
        return version != than


async def watch(
        client, path, *,
        resource_version=None,
        timeout_seconds=600,
        max_retries=-1,
        model=None,
        label_selector=None,
        field_selector=None):
    '''Watch `path`, resuming across disconnects.

    Reconnects continue from the newest resource version seen.  When that
    version has expired (410) the watch restarts without one, and the
    replayed ADDED events that are not newer than the expired version are
    dropped.  Connection failures, and a 410 for a watch that already had
    no version, are retried with exponential backoff.  `max_retries` is the
    number of reconnects allowed after consecutive failures: 0 raises
    `K8sError` on the first failure, a negative value retries forever.
    Authentication errors are never retried.
    '''

    if model is not None:
        def load(data):
            if isinstance(data, dict) and data.get('kind') != 'Status':
                return model._project(data)
            return client._load_model(data)
    else:
        load = client._load_model

    last_version = resource_version or None
    too_old_version = None
    failures = 0
    backoff = 1

    async def retry_later(error):
        nonlocal failures, backoff
        failures += 1
        if max_retries >= 0 and failures > max_retries:
            raise K8sError(
                    f'Watch max retries ({max_retries}) exceeded for {path}'
                    ) from error
        _logger.warning(
                'Watch connection failed for %s (attempt %d): %s',
                path, failures, error)
        await asyncio.sleep(backoff)
        backoff = min(backoff*2, MAX_BACKOFF)

    while True:
        params = client.build_list_params(
                label_selector=label_selector,
                field_selector=field_selector,
                resource_version=last_version,
                timeout_seconds=timeout_seconds,
                watch=True)

        expired = None
        lines = client.stream('GET', path, params=params)
        try:
            async for line in lines:
                event = WatchEvent.parse(line, load)

                if event.error:
                    if _field(event.object, 'code') == 410:
                        expired = Gone(
                                _field(event.object, 'message'),
                                status=410, detail=event.object)
                        break
                    _logger.error('Watch %s: %s',
                            path, _field(event.object, 'message'))
                    yield event
                    continue

                version = _field(event.object, 'metadata', 'resourceVersion')
                if version:
                    if (event.added and too_old_version
                            and not _newer(version, too_old_version)):
                        continue
                    if last_version is None or _newer(version, last_version):
                        last_version = version

                failures = 0
                backoff = 1
                yield event

        except Gone as e:
            expired = e

        except (aiohttp.ClientError, asyncio.TimeoutError, ServerError) as e:
            await retry_later(e)

        finally:
            await lines.aclose()

        if expired is not None:
            if last_version is None:
                # Even a watch without a version was refused.
                await retry_later(expired)
            else:
                _logger.warning(
                        'Restarting %s because version %s is too old',
                        path, last_version)
                too_old_version = last_version
                last_version = None
