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
import binascii
import json
import logging
import os
from pathlib import Path
import subprocess
import tempfile

from .errors import AuthError
from .models.lens import parse_time


__all__ = '''
    Auth
'''.split()


_logger = logging.getLogger(__name__)

EXEC_TIMEOUT = 60


class Auth:
    '''Credentials for the API server.

    Tokens and basic auth become an `Authorization` header, client
    certificates are used by the TLS context instead.
    '''

    def __init__(
            self,
            token=None,
            username=None,
            password=None,
            client_cert_file=None,
            client_key_file=None):
        self.token = token
        self.username = username
        self.password = password
        self.client_cert_file = client_cert_file
        self.client_key_file = client_key_file
        self._temp_files = []

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.kind}>'

    def __eq__(self, them):
        if isinstance(them, Auth):
            return self.to_dict() == them.to_dict()
        return NotImplemented

    __hash__ = None

    @property
    def kind(self):
        if self.token:
            return 'token'
        if self.client_cert_file:
            return 'certificate'
        if self.username:
            return 'basic'
        return 'anonymous'

    def to_dict(self):
        return { k: v for k,v in (
            ('token', self.token),
            ('username', self.username),
            ('password', self.password),
            ('client_cert_file', self.client_cert_file),
            ('client_key_file', self.client_key_file),
        ) if v is not None }

    @classmethod
    def from_dict(cls, data):
        return cls(**{ k: data.get(k) for k in (
            'token', 'username', 'password',
            'client_cert_file', 'client_key_file') })

    def apply_headers(self, headers):
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        elif self.username:
            credentials = f'{self.username}:{self.password or ""}'
            credentials = base64.b64encode(credentials.encode('utf-8')).decode('ascii')
            headers['Authorization'] = f'Basic {credentials}'
        return headers

    def _write_temp_pem(self, data, prefix):
        try:
            pem = base64.b64decode(data)
        except (binascii.Error, ValueError) as e:
            raise AuthError(f'invalid base64 in {prefix} data') from e
        # mkstemp creates the file with mode 0600.
        fd, path = tempfile.mkstemp(prefix=prefix, suffix='.pem')
        self._temp_files.append(path)
        with os.fdopen(fd, 'wb') as fh:
            fh.write(pem)
        return path

    def cleanup_temp_files(self):
        while self._temp_files:
            path = self._temp_files.pop()
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass

    @classmethod
    def from_user(cls, user, *, cache=None):
        '''Credentials for a kubeconfig `users[].user` entry.

        Priority: exec > token/tokenFile > client certificate > basic auth.
        '''

        if user.get('exec'):
            return cls.from_exec(user['exec'], cache=cache)

        if user.get('token'):
            return cls(token=user['token'])

        if user.get('tokenFile'):
            try:
                token = Path(user['tokenFile']).expanduser().read_text().strip()
            except OSError as e:
                raise AuthError(f'cannot read tokenFile: {e}') from e
            return cls(token=token)

        if user.get('client-certificate') or user.get('client-certificate-data'):
            auth = cls()
            if user.get('client-certificate-data'):
                auth.client_cert_file = auth._write_temp_pem(
                        user['client-certificate-data'], 'k8s-client-cert')
            else:
                auth.client_cert_file = str(Path(user['client-certificate']).expanduser())
            if user.get('client-key-data'):
                auth.client_key_file = auth._write_temp_pem(
                        user['client-key-data'], 'k8s-client-key')
            elif user.get('client-key'):
                auth.client_key_file = str(Path(user['client-key']).expanduser())
            return auth

        if user.get('username'):
            return cls(username=user['username'], password=user.get('password'))

        if user.get('auth-provider'):
            provider = user['auth-provider']
            config = provider.get('config') or {}
            token = config.get('id-token') or config.get('access-token')
            if token:
                return cls(token=token)
            _logger.warning(
                    'auth-provider %r is not supported, connecting anonymously',
                    provider.get('name'))

        return cls()

    @classmethod
    def from_exec(cls, exec_conf, *, cache=None):
        '''Run a `client.authentication.k8s.io` exec credential plugin.'''

        key = None
        if cache is not None:
            key = cache.key_for_exec(exec_conf)
            auth = cache.get(key)
            if auth is not None:
                _logger.debug('Using cached exec credential')
                return auth

        command = exec_conf.get('command')
        if not command:
            raise AuthError('exec provider has no command')
        args = [ command, *(exec_conf.get('args') or ()) ]

        env = dict(os.environ)
        for var in exec_conf.get('env') or ():
            try:
                env[var['name']] = var['value']
            except (KeyError, TypeError) as e:
                raise AuthError(f'invalid exec env entry: {var!r}') from e
        env['KUBERNETES_EXEC_INFO'] = json.dumps({
            'apiVersion': exec_conf.get(
                'apiVersion', 'client.authentication.k8s.io/v1'),
            'kind': 'ExecCredential',
            'spec': {'interactive': False},
        })

        _logger.debug('Executing credential provider: %s', ' '.join(args))

        try:
            proc = subprocess.run(
                    args,
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    timeout=EXEC_TIMEOUT)
        except subprocess.TimeoutExpired as e:
            raise AuthError(
                    f'Exec provider timed out after {EXEC_TIMEOUT}s: {command}') from e
        except OSError as e:
            raise AuthError(f'Exec provider failed: {e}') from e

        if proc.returncode != 0:
            error = proc.stderr.decode('utf-8', 'replace').strip()
            _logger.error('Exec provider failed: %s', error)
            raise AuthError(f'Exec provider failed: {error}')

        try:
            credential = json.loads(proc.stdout)
            status = credential['status']
            if not isinstance(status, dict):
                raise TypeError('status is not an object')
        except (ValueError, KeyError, TypeError) as e:
            _logger.error('Failed to parse exec provider output: %s', e)
            raise AuthError(f'Failed to parse exec provider output: {e}') from e

        expires_at = None
        if status.get('expirationTimestamp'):
            expires_at = parse_time(status['expirationTimestamp'])

        if status.get('token'):
            auth = cls(token=status['token'])
        elif status.get('clientCertificateData'):
            auth = cls()
            auth.client_cert_file = auth._write_temp_pem(
                    _pem_b64(status['clientCertificateData']), 'k8s-exec-cert')
            if status.get('clientKeyData'):
                auth.client_key_file = auth._write_temp_pem(
                        _pem_b64(status['clientKeyData']), 'k8s-exec-key')
        else:
            raise AuthError(
                    'Exec provider returned credential without token or certificate')

        # Certificates live in temp files, only tokens survive a cache trip.
        if cache is not None and auth.token:
            cache.set(key, auth, expires_at)

        return auth


def _pem_b64(data):
    # ExecCredential carries PEM text, kubeconfig carries base64 PEM.
    if data.lstrip().startswith('-----BEGIN'):
        return base64.b64encode(data.encode('utf-8')).decode('ascii')
    return data
