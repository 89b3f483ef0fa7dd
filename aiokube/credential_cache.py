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
import hashlib
import json
import logging
import os
from pathlib import Path

from .auth import Auth
from .models.lens import format_time
from .models.lens import parse_time


__all__ = '''
    CachedCredential
    CredentialCache
'''.split()


class CachedCredential:
    def __init__(self, auth, expires_at=None):
        self.auth = auth
        self.expires_at = expires_at

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.auth!r} expires={self.expires_at}>'

    @property
    def expired(self):
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) >= self.expires_at

    def to_dict(self):
        return {
            'auth': self.auth.to_dict(),
            'expires_at': None if self.expires_at is None else format_time(self.expires_at),
        }

    @classmethod
    def from_dict(cls, data):
        expires_at = None
        if data.get('expires_at'):
            expires_at = parse_time(data['expires_at'])
            if expires_at is None:
                raise ValueError(f'bad expires_at {data["expires_at"]!r}')
        return cls(Auth.from_dict(data['auth']), expires_at)


class CredentialCache:
    '''Exec provider tokens cached on disk, the way kubectl does.

    Errors reading or writing the cache are logged and otherwise ignored, a
    broken cache only costs another exec.
    '''

    def __init__(self, directory=None):
        if directory is None:
            directory = Path.home().joinpath('.kube/cache')
        self.directory = Path(directory)
        self._logger = logging.getLogger(self.__class__.__qualname__)
        self._ensure_directory()

    def _ensure_directory(self):
        if self.directory.is_dir():
            return
        try:
            self.directory.mkdir(mode=0o700, parents=True, exist_ok=True)
            os.chmod(self.directory, 0o700)
        except OSError as e:
            self._logger.warning('Failed to create cache directory: %s', e)

    @staticmethod
    def key_for_exec(exec_conf):
        '''
        >>> CredentialCache.key_for_exec({'command': 'aws', 'args': ['eks', 'get-token']})
        '0f5a4577dd17b6e0'
        '''
        args = exec_conf.get('args') or ()
        content = f'{exec_conf.get("command")}|{"|".join(args)}'
        return hashlib.sha256(content.encode('utf-8')).hexdigest()[:16]

    def path_for(self, key):
        return self.directory/f'exec-{key}.json'

    def _discard(self, path):
        try:
            path.unlink()
        except OSError:
            pass

    def get(self, key):
        path = self.path_for(key)
        try:
            text = path.read_text()
        except FileNotFoundError:
            return None
        except OSError as e:
            self._logger.warning('Failed to load cached credential: %s', e)
            return None

        try:
            cached = CachedCredential.from_dict(json.loads(text))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            self._logger.warning('Failed to load cached credential: %s', e)
            self._discard(path)
            return None

        if cached.expired:
            self._logger.debug('Cached credential expired for key: %s', key)
            self._discard(path)
            return None

        self._logger.debug(
                'Using cached credential for key: %s (expires: %s)',
                key, cached.expires_at)
        return cached.auth

    def set(self, key, auth, expires_at=None):
        path = self.path_for(key)
        cached = CachedCredential(auth, expires_at)
        try:
            self._ensure_directory()
            fd = os.open(path, os.O_WRONLY|os.O_CREAT|os.O_TRUNC, 0o600)
            with os.fdopen(fd, 'w') as fh:
                json.dump(cached.to_dict(), fh)
            os.chmod(path, 0o600)
        except OSError as e:
            self._logger.warning('Failed to cache credential: %s', e)
            return
        self._logger.debug('Cached credential for key: %s (expires: %s)', key, expires_at)

    def clear_all(self):
        if not self.directory.is_dir():
            return
        for path in self.directory.glob('exec-*.json'):
            self._discard(path)
            self._logger.debug('Deleted cache file: %s', path)
