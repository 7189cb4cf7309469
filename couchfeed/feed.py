'''Decoding of CouchDB changes feeds.

The ``_changes`` endpoint multiplexes four framing protocols on one HTTP
exchange, selected by the ``feed`` option:

* ``normal`` and ``longpoll`` send one JSON document once the response is
  complete;
* ``continuous`` sends one JSON object per line, blank lines are heartbeats;
* ``eventsource`` sends `server-sent events`_, one record per change.

A :class:`FeedDecoder` turns raw text chunks into *fragments*, dictionaries
with a ``results`` list, and a :class:`FeedSession` drives a decoder over one
streamed response, yielding a :class:`.DatabasesResponse` per fragment.

.. _`server-sent events`: https://html.spec.whatwg.org/#server-sent-events
'''
import re
import json
import logging
import asyncio
from collections import deque

from .response import normalize
from .utils.exceptions import FeedDecodeError


__all__ = ['FeedDecoder',
           'BufferedDecoder',
           'ContinuousDecoder',
           'EventSourceDecoder',
           'FeedSession',
           'register_decoder',
           'get_decoder',
           'decoders']


LOGGER = logging.getLogger('couchfeed.feed')

PREAMBLE = re.compile(r'^\s*{\s*"results"\s*:\s*\[')

# characters which change the nesting of a JSON text
JSON_TOKENS = re.compile(r'[{}"\\]')

decoders = {}


def register_decoder(*modes):
    '''Class decorator registering a :class:`FeedDecoder` for ``modes``
    '''
    def _(cls):
        for mode in modes:
            decoders[mode] = cls
        return cls
    return _


def get_decoder(mode):
    '''A new decoder for feed ``mode``.

    Unknown modes are decoded as a ``normal`` feed.
    '''
    return decoders.get(mode, BufferedDecoder)(mode)


class FeedDecoder:
    '''Base class for feed decoders.

    A decoder receives text chunks via :meth:`feed` and returns the
    fragments completed by each chunk. :meth:`close` is called once the
    stream ends and returns the fragments still buffered.
    '''
    def __init__(self, mode):
        self.mode = mode

    def __repr__(self):
        return '%s(%s)' % (self.__class__.__name__, self.mode)

    def feed(self, chunk):
        return ()

    def close(self):
        return ()

    def parse(self, text):
        try:
            return json.loads(text)
        except ValueError as exc:
            raise FeedDecodeError('Could not decode %s record: %s' %
                                  (self.mode, exc),
                                  mode=self.mode, record=text) from exc


@register_decoder('normal', 'longpoll')
class BufferedDecoder(FeedDecoder):
    '''Buffer the whole body and decode it once.

    The body is prefixed with ``{"results": [`` when it does not start with
    it already.
    '''
    def __init__(self, mode):
        super().__init__(mode)
        self._chunks = []

    def feed(self, chunk):
        self._chunks.append(chunk)
        return ()

    def close(self):
        body = ''.join(self._chunks)
        self._chunks = []
        if not PREAMBLE.match(body):
            body = '{"results": [%s' % body
        return [self.parse(body)]


@register_decoder('continuous')
class ContinuousDecoder(FeedDecoder):
    '''One change per line.

    Lines are reassembled across chunks. A trailing line without its newline
    is emitted as soon as it is a complete JSON object, which is detected by
    tracking the brace depth of the text received so far, so that each chunk
    is scanned once. Blank lines are heartbeats and never reach the parser.
    '''
    def __init__(self, mode):
        super().__init__(mode)
        self._parts = []
        self._reset_scan()

    def feed(self, chunk):
        lines = chunk.split('\n')
        remainder = lines.pop()
        fragments = []
        if lines:
            lines[0] = ''.join(self._parts) + lines[0]
            fragments.extend(self._record(line) for line in lines)
            self._parts = []
            self._reset_scan()
        if remainder:
            self._parts.append(remainder)
            self._scan(remainder)
            if self._complete(remainder):
                line = ''.join(self._parts)
                try:
                    value = json.loads(line)
                except ValueError:
                    pass
                else:
                    self._parts = []
                    self._reset_scan()
                    fragments.append({'results': [value]})
        return [f for f in fragments if f is not None]

    def close(self):
        line = ''.join(self._parts)
        self._parts = []
        self._reset_scan()
        fragment = self._record(line)
        return [fragment] if fragment is not None else []

    def _record(self, line):
        if not line.strip():
            if line:
                LOGGER.debug('heartbeat')
            return None
        return {'results': [self.parse(line)]}

    def _reset_scan(self):
        self._depth = 0
        self._in_string = False
        self._escape = False

    def _scan(self, text):
        skip = 0
        if self._escape:
            self._escape = False
            skip = 1
        for match in JSON_TOKENS.finditer(text, skip):
            index = match.start()
            if index < skip:
                continue
            token = match.group()
            if self._in_string:
                if token == '\\':
                    skip = index + 2
                    self._escape = skip > len(text)
                elif token == '"':
                    self._in_string = False
            elif token == '"':
                self._in_string = True
            elif token == '{':
                self._depth += 1
            elif token == '}':
                self._depth -= 1

    def _complete(self, text):
        return (self._depth == 0 and not self._in_string and
                text.rstrip().endswith('}'))


@register_decoder('eventsource')
class EventSourceDecoder(FeedDecoder):
    '''Parser of server-sent events.

    ``data`` lines accumulate until a blank line dispatches the record as
    ``{"results": [{"data": <change>, "id": <event id>}]}``. Records
    without data, such as heartbeats, are dropped. Comments and the
    ``retry`` field are ignored.
    '''
    def __init__(self, mode):
        super().__init__(mode)
        self._buffer = ''
        self._reset()

    def feed(self, chunk):
        self._buffer += chunk
        lines = self._buffer.split('\n')
        self._buffer = lines.pop()
        fragments = (self._line(line.rstrip('\r')) for line in lines)
        return [f for f in fragments if f is not None]

    def close(self):
        line, self._buffer = self._buffer, ''
        fragments = []
        if line:
            fragments.append(self._line(line.rstrip('\r')))
        fragments.append(self._dispatch())
        return [f for f in fragments if f is not None]

    def _reset(self):
        self._data = []
        self._event = None
        self._event_id = None

    def _line(self, line):
        if not line:
            return self._dispatch()
        elif line.startswith(':'):
            return None
        field, _, value = line.partition(':')
        if value.startswith(' '):
            value = value[1:]
        if field == 'data':
            self._data.append(value)
        elif field == 'id':
            self._event_id = value
        elif field == 'event':
            self._event = value

    def _dispatch(self):
        data = '\n'.join(self._data)
        event, event_id = self._event, self._event_id
        self._reset()
        if not data.strip():
            if event or event_id is not None:
                LOGGER.debug('dropped %s record', event or 'empty')
            return None
        record = {'data': self.parse(data)}
        if event_id is not None:
            record['id'] = int(event_id) if event_id.isdigit() else event_id
        return {'results': [record]}


class FeedSession:
    '''A changes feed being consumed.

    A session owns one streamed response from the :attr:`transport` and one
    :attr:`decoder`. It is an asynchronous iterator over
    :class:`.DatabasesResponse`, one for each decoded fragment, in arrival
    order::

        session = await databases.changes('mydb', feed='continuous')
        async for response in session:
            for change in response.changes:
                ...

    Iteration ends when the server closes the stream or when
    :meth:`cancel` is called. A decoding or transport error is raised once
    and ends the session.

    .. attribute:: last_seq

        The most recent sequence token received, ``None`` until the first
        change arrives.
    '''
    def __init__(self, transport, method, path, options, body=None):
        self.transport = transport
        self.method = method
        self.path = path
        self.options = options
        self.body = body
        self.decoder = get_decoder(options.feed)
        self.last_seq = None
        self._stream = None
        self._chunks = None
        self._pending = deque()
        self._exhausted = False
        self._closed = False

    def __repr__(self):
        return '%s(%s %s)' % (self.__class__.__name__, self.method,
                              self.path)
    __str__ = __repr__

    @property
    def mode(self):
        return self.options.feed

    @property
    def started(self):
        return self._stream is not None

    @property
    def closed(self):
        return self._closed

    async def start(self):
        '''Open the streamed request.

        Transport errors are raised here, before any event is produced.
        '''
        if self._stream is None and not self._closed:
            LOGGER.debug('starting %s', self)
            self._stream = await self.transport.streamed(
                self.method, self.path, self.body)
            self._chunks = self._stream.__aiter__()
        return self

    def cancel(self):
        '''Stop consuming the feed.

        Events decoded but not yet delivered are discarded and the
        stream is closed. Calling it more than once has no effect.
        '''
        if not self._closed:
            LOGGER.debug('cancelling %s', self)
            self._pending.clear()
            self._teardown()

    def resume_options(self):
        '''Options for a new session starting after :attr:`last_seq`
        '''
        if self.last_seq is None:
            return self.options
        return self.options.replace(since=self.last_seq)

    async def collect(self):
        '''Consume the whole feed and return the list of responses
        '''
        return [response async for response in self]

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._stream is None:
            await self.start()
        while not self._closed:
            if self._pending:
                return self._emit(self._pending.popleft())
            if self._exhausted:
                self._teardown()
                break
            try:
                try:
                    chunk = await self._chunks.__anext__()
                except StopAsyncIteration:
                    if self._closed:
                        break
                    self._exhausted = True
                    fragments = self.decoder.close()
                else:
                    if self._closed:
                        break
                    fragments = self.decoder.feed(chunk)
            except (Exception, asyncio.CancelledError):
                self._teardown()
                raise
            self._pending.extend(fragments)
        raise StopAsyncIteration

    async def __aenter__(self):
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.cancel()

    # INTERNALS
    def _emit(self, fragment):
        self._track(fragment)
        return normalize(fragment)

    def _track(self, fragment):
        seq = None
        for result in fragment.get('results') or ():
            if isinstance(result, dict):
                data = result.get('data', result)
                if isinstance(data, dict):
                    seq = data.get('seq', data.get('last_seq', seq))
        seq = fragment.get('last_seq', seq)
        if seq is not None:
            self.last_seq = seq

    def _teardown(self):
        if not self._closed:
            self._closed = True
            if self._stream is not None:
                self._stream.close()
            LOGGER.debug('%s closed', self)
