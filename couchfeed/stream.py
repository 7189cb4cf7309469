import codecs
import logging
import asyncio

import aiohttp

from .utils.exceptions import HttpConnectionError


LOGGER = logging.getLogger('couchfeed.transport')


class StreamConsumedError(Exception):
    """Raised when iterating a second time over a :class:`HttpStream`"""
    pass


class HttpStream:
    """An asynchronous streaming body for an HTTP response.

    Iterating over a stream yields text chunks as they arrive from the
    server. Chunk boundaries follow the network, not the records of the
    payload. A stream can be iterated only once.

    :meth:`close` is the cancellation hook, it closes the underlying
    connection the first time it is called and does nothing afterwards.
    """
    def __init__(self, response, encoding=None):
        self._response = response
        self._streamed = False
        self._closed = False
        self._decoder = codecs.getincrementaldecoder(
            encoding or response.charset or 'utf-8')()

    def __repr__(self):
        return repr(self._response)
    __str__ = __repr__

    @property
    def status_code(self):
        return self._response.status

    @property
    def headers(self):
        return self._response.headers

    @property
    def done(self):
        """Check if the stream is finished or closed
        """
        return self._closed

    async def read(self):
        """Read all content as text
        """
        if self._streamed:
            return ''
        buffer = []
        async for chunk in self:
            buffer.append(chunk)
        return ''.join(buffer)

    def close(self):
        if not self._closed:
            self._closed = True
            self._response.close()
            LOGGER.debug('closed %s', self)

    def __aiter__(self):
        if self._streamed:
            raise StreamConsumedError
        self._streamed = True
        return self

    async def __anext__(self):
        while not self._closed:
            try:
                data = await self._response.content.readany()
            except (aiohttp.ClientError, asyncio.TimeoutError,
                    ConnectionError) as exc:
                if self._closed:
                    break
                self.close()
                raise HttpConnectionError(str(exc) or exc.__class__.__name__,
                                          response=self) from exc
            if not data:
                tail = self._decoder.decode(b'', final=True)
                self.close()
                if tail:
                    return tail
                break
            text = self._decoder.decode(data)
            if text:
                return text
        raise StopAsyncIteration
