'''HttpTransport against an aiohttp test server'''
import json
import asyncio
import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer

from couchfeed import (HttpTransport, Databases, CouchDB, HttpResponseError,
                       HttpConnectionError, CouchDbNoDbError)
from couchfeed.stream import HttpStream, StreamConsumedError


CHANGES = [{'seq': 1, 'id': 'café', 'changes': [{'rev': '1-a'}]},
           {'seq': 2, 'id': 'b', 'changes': [{'rev': '1-b'}]}]


async def info(request):
    request.app['auth'].append(request.headers.get('Authorization'))
    if request.match_info['db'] == 'missing':
        return web.json_response({'error': 'not_found',
                                  'reason': 'Database does not exist.'},
                                 status=404)
    return web.json_response({'db_name': request.match_info['db']})


async def create(request):
    return web.json_response({'ok': True, 'q': request.query['q']},
                             status=201)


def dumps(value):
    return json.dumps(value, ensure_ascii=False)


async def changes(request):
    if request.match_info['db'] == 'missing':
        return web.json_response({'error': 'not_found',
                                  'reason': 'Database does not exist.'},
                                 status=404)
    feed = request.query['feed']
    response = web.StreamResponse(
        headers={'Content-Type': 'application/json; charset=utf-8'})
    await response.prepare(request)
    if feed == 'longpoll' and request.query.get('since') == 'now':
        return await hold(request, response)
    if request.method == 'POST':
        body = await request.json()
        records = [{'seq': n, 'id': i}
                   for n, i in enumerate(body['doc_ids'], 1)]
    elif request.query.get('since') == 'forever':
        records = [{'seq': n} for n in range(1, 200)]
    else:
        records = CHANGES
    if feed == 'normal':
        data = dumps({'results': records, 'last_seq': len(records)})
        data = data.encode('utf-8')
        # split inside the body and inside a multibyte character
        middle = data.index('é'.encode('utf-8')) + 1
        for piece in (data[:middle], data[middle:]):
            await response.write(piece)
            await asyncio.sleep(0.01)
    elif feed == 'continuous':
        for record in records:
            await response.write(b'\n')
            await response.write(('%s\n' % dumps(record)).encode('utf-8'))
            await asyncio.sleep(0.01)
    elif feed == 'eventsource':
        for record in records:
            text = 'data: %s\nid: %s\n\n' % (dumps(record), record['seq'])
            await response.write(text.encode('utf-8'))
            await asyncio.sleep(0.01)
    await response.write_eof()
    return response


async def hold(request, response):
    # a longpoll request waiting for a change which never happens
    request.app['held'].set()
    await response.write(b'{"results":[')
    for _ in range(500):
        if request.transport is None or request.transport.is_closing():
            break
        await asyncio.sleep(0.01)
    return response


def app():
    application = web.Application()
    application['auth'] = []
    application['held'] = asyncio.Event()
    application.router.add_route('GET', '/{db}', info)
    application.router.add_route('PUT', '/{db}', create)
    application.router.add_route('GET', '/{db}/_changes', changes)
    application.router.add_route('POST', '/{db}/_changes', changes)
    return application


class TestHttpTransport(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.app = app()
        self.server = TestServer(self.app)
        await self.server.start_server()
        self.transport = HttpTransport(str(self.server.make_url('/')),
                                       user='admin', password='secret')
        self.db = Databases(self.transport)

    async def asyncTearDown(self):
        await self.transport.close()
        await self.server.close()

    async def test_request(self):
        response = await self.db.info('mydb')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['db_name'], 'mydb')
        self.assertTrue(
            response.headers['content-type'].startswith('application/json'))
        self.assertTrue(self.app['auth'][0].startswith('Basic '))

    async def test_request_error(self):
        with self.assertRaises(CouchDbNoDbError):
            await self.db.info('missing')

    async def test_put(self):
        response = await self.db.create('newdb', q=2)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response['q'], '2')

    async def test_normal_feed(self):
        session = await self.db.changes('mydb')
        responses = await session.collect()
        self.assertEqual(len(responses), 1)
        self.assertEqual(responses[0].results, CHANGES)
        self.assertEqual(responses[0].changes[0].id, 'café')
        self.assertEqual(session.last_seq, 2)

    async def test_continuous_feed(self):
        session = await self.db.changes('mydb', feed='continuous')
        responses = await session.collect()
        self.assertEqual([r.results[0] for r in responses], CHANGES)

    async def test_eventsource_feed(self):
        session = await self.db.changes('mydb', feed='eventsource')
        events = [r.changes[0] for r in await session.collect()]
        self.assertEqual([e.event_id for e in events], [1, 2])
        self.assertEqual([e.id for e in events], ['café', 'b'])

    async def test_post_feed(self):
        session = await self.db.post_changes('mydb', feed='continuous',
                                             doc_ids=['x', 'y'])
        ids = [r.changes[0].id for r in await session.collect()]
        self.assertEqual(ids, ['x', 'y'])

    async def test_cancel(self):
        session = await self.db.changes('mydb', feed='continuous',
                                        since='forever')
        seen = []
        async with session:
            async for response in session:
                seen.append(response.results)
                if len(seen) == 3:
                    session.cancel()
        self.assertEqual(len(seen), 3)
        self.assertTrue(session.closed)

    async def test_cancel_continuous(self):
        session = await self.db.changes('mydb', feed='continuous')
        async for response in session:
            session.cancel()
        self.assertEqual(response.results, [CHANGES[0]])

    async def test_cancel_pending_longpoll(self):
        session = await self.db.changes('mydb', feed='longpoll',
                                        since='now')
        task = asyncio.ensure_future(session.collect())
        await asyncio.wait_for(self.app['held'].wait(), 1)
        await asyncio.sleep(0.05)
        self.assertFalse(task.done())
        session.cancel()
        responses = await asyncio.wait_for(task, 1)
        self.assertEqual(responses, [])
        self.assertTrue(session.closed)

    async def test_streamed_error(self):
        with self.assertRaises(HttpResponseError) as cm:
            await self.db.changes('missing', feed='continuous')
        self.assertEqual(cm.exception.status_code, 404)
        self.assertEqual(cm.exception.body['error'], 'not_found')

    async def test_stream(self):
        stream = await self.transport.streamed(
            'GET', 'mydb/_changes?feed=continuous')
        self.assertIsInstance(stream, HttpStream)
        self.assertEqual(stream.status_code, 200)
        text = await stream.read()
        self.assertTrue(stream.done)
        self.assertEqual([json.loads(line) for line in text.split('\n')
                          if line.strip()], CHANGES)
        self.assertRaises(StreamConsumedError, stream.__aiter__)
        stream.close()


class TestClient(unittest.IsolatedAsyncioTestCase):

    async def test_connection_error(self):
        transport = HttpTransport('http://127.0.0.1:1')
        async with CouchDB(transport=transport) as couch:
            with self.assertRaises(HttpConnectionError):
                await couch.info()
            with self.assertRaises(HttpConnectionError):
                await couch.databases.changes('mydb', feed='continuous')

    async def test_client(self):
        server = TestServer(app())
        await server.start_server()
        try:
            async with CouchDB(str(server.make_url('/'))) as couch:
                self.assertIsInstance(couch.transport, HttpTransport)
                self.assertEqual(repr(couch),
                                 'CouchDB(%s)' % couch.transport.address)
                info = await couch.databases.info('mydb')
                self.assertEqual(info['db_name'], 'mydb')
        finally:
            await server.close()
