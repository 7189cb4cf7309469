'''Consuming a changes feed with a FeedSession'''
import asyncio
import unittest

from couchfeed import (FeedSession, FeedOptions, FeedDecodeError,
                       HttpConnectionError, HttpResponseError,
                       DatabasesResponse)

from tests.tools import PendingStream, RecordingTransport, lines


def session(chunks, error=None, **options):
    transport = RecordingTransport(chunks=chunks, error=error)
    options = FeedOptions(**options)
    return FeedSession(transport, 'GET', 'db/_changes', options), transport


class TestFeedSession(unittest.IsolatedAsyncioTestCase):

    async def test_normal(self):
        feed, transport = session(['{"seq":3}]', ',"last_seq":3}'])
        self.assertFalse(feed.started)
        responses = await feed.collect()
        self.assertEqual(len(responses), 1)
        response = responses[0]
        self.assertIsInstance(response, DatabasesResponse)
        self.assertEqual(response.json, {'results': [{'seq': 3}],
                                         'last_seq': 3})
        self.assertEqual(response.status_code, None)
        self.assertEqual(len(response.headers), 0)
        self.assertEqual(feed.last_seq, 3)
        self.assertTrue(feed.closed)
        self.assertEqual(transport.streams[0].closed, 1)

    async def test_continuous(self):
        feed, transport = session(
            [lines({'seq': 1, 'id': 'a'}), '\n', lines({'seq': 2, 'id': 'b'})],
            feed='continuous')
        async with feed:
            self.assertTrue(feed.started)
            ids = [r.changes[0].id async for r in feed]
        self.assertEqual(ids, ['a', 'b'])
        self.assertEqual(feed.last_seq, 2)
        self.assertEqual(transport.streams[0].closed, 1)

    async def test_eventsource(self):
        feed, _ = session(['data: {"seq":1,"id":"doc1"}\nid: 1\n\n'],
                          feed='eventsource')
        responses = await feed.collect()
        self.assertEqual(len(responses), 1)
        change = responses[0].changes[0]
        self.assertEqual(change.seq, 1)
        self.assertEqual(change.id, 'doc1')
        self.assertEqual(change.event_id, 1)
        self.assertEqual(feed.last_seq, 1)

    async def test_cancel_mid_stream(self):
        chunks = [lines({'seq': n}) for n in range(1, 6)]
        feed, transport = session(chunks, feed='continuous')
        await feed.start()
        seen = []
        async for response in feed:
            seen.append(response.results[0]['seq'])
            if len(seen) == 2:
                feed.cancel()
        self.assertEqual(seen, [1, 2])
        self.assertTrue(feed.closed)
        stream = transport.streams[0]
        self.assertEqual(stream.closed, 1)
        self.assertEqual(stream.delivered, 2)
        feed.cancel()
        self.assertEqual(stream.closed, 1)
        with self.assertRaises(StopAsyncIteration):
            await feed.__anext__()

    async def test_cancel_discards_buffered_events(self):
        feed, transport = session([lines({'seq': 1}, {'seq': 2}, {'seq': 3})],
                                  feed='continuous')
        first = await feed.__anext__()
        self.assertEqual(first.results, [{'seq': 1}])
        feed.cancel()
        self.assertEqual(await feed.collect(), [])
        self.assertEqual(feed.last_seq, 1)
        self.assertEqual(transport.streams[0].closed, 1)

    async def test_cancel_before_start(self):
        feed, transport = session([lines({'seq': 1})], feed='continuous')
        feed.cancel()
        self.assertEqual(await feed.collect(), [])
        self.assertEqual(transport.requests, [])

    async def test_decode_error(self):
        feed, transport = session([lines({'seq': 1}), '{not json'],
                                  feed='continuous')
        responses = []
        with self.assertRaises(FeedDecodeError):
            async for response in feed:
                responses.append(response)
        self.assertEqual(len(responses), 1)
        self.assertTrue(feed.closed)
        self.assertEqual(transport.streams[0].closed, 1)
        with self.assertRaises(StopAsyncIteration):
            await feed.__anext__()

    async def test_transport_error_mid_stream(self):
        feed, transport = session(
            [lines({'seq': 1}), HttpConnectionError('reset'),
             lines({'seq': 2})], feed='continuous')
        responses = []
        with self.assertRaises(HttpConnectionError):
            async for response in feed:
                responses.append(response)
        self.assertEqual([r.results[0]['seq'] for r in responses], [1])
        self.assertEqual(transport.streams[0].closed, 1)

    async def test_transport_error_on_start(self):
        error = HttpResponseError('404', status_code=404,
                                  body={'error': 'not_found'})
        feed, _ = session([], error=error, feed='continuous')
        with self.assertRaises(HttpResponseError) as cm:
            await feed.start()
        self.assertEqual(cm.exception.status_code, 404)
        self.assertFalse(feed.started)

    async def test_task_cancelled(self):
        feed, transport = session([lines({'seq': 1})], feed='continuous')
        await feed.start()
        stream = transport.streams[0]

        async def blocked():
            await asyncio.sleep(10)
        stream.__anext__ = blocked

        async def consume():
            return await feed.collect()

        task = asyncio.ensure_future(consume())
        await asyncio.sleep(0.01)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertTrue(feed.closed)
        self.assertEqual(stream.closed, 1)

    async def cancel_while_reading(self, chunks, **options):
        transport = RecordingTransport(chunks=chunks,
                                       stream_class=PendingStream)
        feed = FeedSession(transport, 'GET', 'db/_changes',
                           FeedOptions(**options))
        await feed.start()
        stream = transport.streams[0]
        task = asyncio.ensure_future(feed.collect())
        await stream.waiting.wait()
        feed.cancel()
        responses = await asyncio.wait_for(task, 1)
        self.assertTrue(feed.closed)
        self.assertEqual(stream.closed, 1)
        return responses

    async def test_cancel_pending_normal(self):
        responses = await self.cancel_while_reading(
            ['{"results": ['], feed='normal')
        self.assertEqual(responses, [])

    async def test_cancel_pending_longpoll(self):
        responses = await self.cancel_while_reading(
            ['{"results": [', '{"seq": 1}'], feed='longpoll')
        self.assertEqual(responses, [])

    async def test_cancel_pending_continuous(self):
        responses = await self.cancel_while_reading(
            [lines({'seq': 1}), '{"se'], feed='continuous')
        self.assertEqual([r.results[0]['seq'] for r in responses], [1])

    async def test_cancel_pending_eventsource(self):
        responses = await self.cancel_while_reading(
            ['data: {"seq": 1}\n'], feed='eventsource')
        self.assertEqual(responses, [])

    async def test_resume_options(self):
        feed, _ = session([lines({'seq': '7-g1'})], feed='continuous')
        self.assertEqual(feed.resume_options(), feed.options)
        await feed.collect()
        options = feed.resume_options()
        self.assertEqual(options.since, '7-g1')
        self.assertEqual(options.feed, 'continuous')

    async def test_last_seq_from_last_seq_record(self):
        feed, _ = session([lines({'seq': 1}, {'last_seq': 4})],
                          feed='continuous')
        await feed.collect()
        self.assertEqual(feed.last_seq, 4)
