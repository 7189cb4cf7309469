'''Transports carry requests to the server.

A :class:`Transport` issues buffered requests, returning an
:class:`.ApiResponse`, and streamed requests, returning an asynchronous
iterator over text chunks which can be closed at any time.
:class:`HttpTransport` is the implementation on top of aiohttp_.

.. _aiohttp: https://docs.aiohttp.org/
'''
import json
import logging
import asyncio
from abc import ABCMeta, abstractmethod

import aiohttp
from multidict import CIMultiDict
from yarl import URL

from .response import ApiResponse, is_succesful
from .stream import HttpStream
from .utils.exceptions import HttpConnectionError, HttpResponseError


__all__ = ['Transport', 'HttpTransport', 'DEFAULT_HEADERS']


LOGGER = logging.getLogger('couchfeed.transport')

DEFAULT_HEADERS = (('Accept', 'application/json, text/plain; q=0.8'),
                   ('Content-Type', 'application/json'))


def decode_body(text):
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


async def read_text(response):
    data = await response.read()
    return data.decode(response.charset or 'utf-8')


class Transport(metaclass=ABCMeta):
    '''Base class for transports.

    :param address: the server address, for example
        ``http://127.0.0.1:5984``.
    :param headers: additional headers sent with every request.
    :param user: optional user name for basic authentication.
    :param password: optional password for basic authentication.
    :param timeout: timeout in seconds for buffered requests,
        ``None`` or 0 for no timeout.
    '''
    def __init__(self, address, headers=None, user=None, password=None,
                 timeout=None):
        self.address = address.rstrip('/')
        self.headers = CIMultiDict(DEFAULT_HEADERS)
        if headers:
            self.headers.update(headers)
        self.user = user
        self.password = password
        self.timeout = timeout or None

    def __repr__(self):
        return '%s(%s)' % (self.__class__.__name__, self.address)
    __str__ = __repr__

    def url(self, path=None):
        if not path:
            return self.address
        return '%s/%s' % (self.address, path.lstrip('/'))

    def head(self, path, headers=None):
        return self.request('HEAD', path, headers=headers)

    def get(self, path, headers=None):
        return self.request('GET', path, headers=headers)

    def post(self, path, body=None, headers=None):
        return self.request('POST', path, body, headers)

    def put(self, path, body=None, headers=None):
        return self.request('PUT', path, body, headers)

    def delete(self, path, headers=None):
        return self.request('DELETE', path, headers=headers)

    @abstractmethod
    async def request(self, method, path, body=None, headers=None):
        '''Execute a buffered request and return an :class:`.ApiResponse`
        '''

    @abstractmethod
    async def streamed(self, method, path, body=None, headers=None):
        '''Open a streamed request.

        Return an asynchronous iterator over text chunks with a ``close``
        method. Raise :class:`.HttpConnectionError` when the request cannot
        be sent and :class:`.HttpResponseError` when the server does not
        answer with a success status.
        '''

    async def close(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class HttpTransport(Transport):
    '''A :class:`Transport` using an :class:`aiohttp.ClientSession`.

    The session is created lazily on the first request and closed by
    :meth:`close`.
    '''
    def __init__(self, address, session=None, **kw):
        super().__init__(address, **kw)
        self._http = session

    @property
    def http(self):
        if self._http is None:
            auth = None
            if self.user:
                auth = aiohttp.BasicAuth(self.user, self.password or '')
            self._http = aiohttp.ClientSession(headers=self.headers,
                                               auth=auth)
        return self._http

    async def request(self, method, path, body=None, headers=None):
        method = method.upper()
        url = self.url(path)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        LOGGER.debug('%s %s', method, url)
        try:
            async with self.http.request(method, URL(url, encoded=True),
                                         data=self._encode(body),
                                         headers=headers,
                                         timeout=timeout) as response:
                data = None
                if method != 'HEAD':
                    data = decode_body(await read_text(response))
                return ApiResponse(data, response.status, response.headers)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            LOGGER.warning('%s %s failed: %s', method, url, exc)
            raise HttpConnectionError(
                str(exc) or exc.__class__.__name__) from exc

    async def streamed(self, method, path, body=None, headers=None):
        method = method.upper()
        url = self.url(path)
        # feeds are open until the server closes them
        timeout = aiohttp.ClientTimeout(total=None, sock_read=None)
        LOGGER.debug('%s %s (streamed)', method, url)
        try:
            response = await self.http.request(method,
                                               URL(url, encoded=True),
                                               data=self._encode(body),
                                               headers=headers,
                                               timeout=timeout)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            LOGGER.warning('%s %s failed: %s', method, url, exc)
            raise HttpConnectionError(
                str(exc) or exc.__class__.__name__) from exc
        if not is_succesful(response.status):
            try:
                data = decode_body(await read_text(response))
            finally:
                response.close()
            msg = '%s %s - %s %s' % (response.status, response.reason,
                                     method, url)
            LOGGER.warning(msg)
            raise HttpResponseError(msg, status_code=response.status,
                                    body=data)
        return HttpStream(response)

    async def close(self):
        if self._http is not None:
            http, self._http = self._http, None
            await http.close()

    def _encode(self, body):
        if body is not None:
            return json.dumps(body)
