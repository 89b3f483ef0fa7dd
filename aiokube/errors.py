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


__all__ = '''
    K8sError
    ClientError
    NotFound
    Conflict
    Gone
    AuthenticationError
    ServerError
    UnexpectedResponse
    ConfigError
    AuthError
    K8sTimeoutError
    SerializationError
    error_for_status
'''.split()


class K8sError(Exception):
    '''Base class for errors raised by aiokube.

    API errors carry the HTTP `status` and, when the server replied with a
    `Status` object, that object as `detail`.
    '''

    def __init__(self, message=None, *, status=None, detail=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.detail = detail

    def __str__(self):
        if self.message:
            return str(self.message)
        message = _detail_message(self.detail)
        if message:
            return message
        if self.status is not None:
            return f'HTTP {self.status}'
        return self.__class__.__name__


class ClientError(K8sError):
    '''The API server rejected the request (4xx).'''


class NotFound(ClientError):
    pass


class Conflict(ClientError):
    pass


class Gone(ClientError):
    '''The requested resource version is no longer available.'''


class AuthenticationError(ClientError):
    pass


class ServerError(K8sError):
    pass


class UnexpectedResponse(K8sError):
    pass


class ConfigError(K8sError):
    pass


class AuthError(K8sError):
    pass


class K8sTimeoutError(K8sError):
    pass


class SerializationError(K8sError, ValueError):
    pass


def error_for_status(status, detail=None, message=None):
    '''Pick the exception for an HTTP status code.

    >>> error_for_status(404)
    NotFound('HTTP 404')
    '''

    if status in (401, 403):
        cls = AuthenticationError
    elif status == 404:
        cls = NotFound
    elif status == 409:
        cls = Conflict
    elif status == 410:
        cls = Gone
    elif 400 <= status < 500:
        cls = ClientError
    elif 500 <= status < 600:
        cls = ServerError
    else:
        cls = UnexpectedResponse

    if message is None:
        message = _detail_message(detail) or f'HTTP {status}'
    return cls(message, status=status, detail=detail)


def _detail_message(detail):
    if detail is None:
        return None
    if isinstance(detail, dict):
        return detail.get('message')
    return getattr(detail, 'message', None)
