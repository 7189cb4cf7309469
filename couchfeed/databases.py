'''Operations on a database of a CouchDB_ server.

All operations are coroutines of :class:`Databases`. One-shot operations
return a :class:`.DatabasesResponse`, changes feeds return a started
:class:`.FeedSession`::

    databases = Databases(HttpTransport('http://127.0.0.1:5984'))
    await databases.create('mydb')
    session = await databases.changes('mydb', feed='continuous')
    async for response in session:
        ...

.. _CouchDB: http://couchdb.apache.org/
'''
import re
import json
import logging
from urllib.parse import quote, urlencode

from .feed import FeedSession
from .query import FeedOptions, DOC_IDS_FILTER, changes_path, encode_body
from .response import DatabasesResponse
from .utils.exceptions import (CouchDbNoDbError, HttpResponseError,
                               couch_db_error)


__all__ = ['Databases', 'valid_database_name']


LOGGER = logging.getLogger('couchfeed.databases')

DATABASE_NAME = re.compile(r'^[a-z][a-z0-9_$()+/-]*$')

# query parameters sent as JSON
JSON_PARAMETERS = frozenset(('key', 'keys', 'startkey', 'endkey',
                             'start_key', 'end_key'))


def valid_database_name(dbname):
    return bool(DATABASE_NAME.match(dbname))


def query_value(name, value):
    if name in JSON_PARAMETERS:
        return json.dumps(value)
    elif isinstance(value, bool):
        return 'true' if value else 'false'
    return value


def find_body(selector, limit=25, skip=None, sort=None, fields=None,
              use_index=None, r=1, bookmark='', update=True, stable=None,
              stale='false', execution_stats=False):
    body = {'selector': selector,
            'limit': limit,
            'r': r,
            'bookmark': bookmark,
            'update': update,
            'stale': stale,
            'execution_stats': execution_stats}
    if skip is not None:
        body['skip'] = skip
    if sort is not None:
        body['sort'] = sort
    if fields is not None:
        body['fields'] = fields
    if use_index is not None:
        body['use_index'] = use_index
    if stable is not None:
        body['stable'] = stable
    return body


class Databases:
    '''Accessor of the per-database HTTP API of a CouchDB server.

    :param transport: the :class:`.Transport` used to send requests.
    '''
    def __init__(self, transport):
        self.transport = transport

    def __repr__(self):
        return '%s(%s)' % (self.__class__.__name__, self.transport)
    __str__ = __repr__

    # CHANGES FEED
    async def changes(self, dbname, options=None, **kw):
        '''Changes feed of ``dbname`` requested with a ``GET``.

        :param options: optional :class:`.FeedOptions`, updated with ``kw``.
        :param kw: feed options, see :class:`.FeedOptions`.
        :return: a started :class:`.FeedSession`.
        '''
        options = self._options(options, kw)
        return await self.feed(dbname, options, 'GET')

    async def post_changes(self, dbname, options=None, **kw):
        '''Changes feed of ``dbname`` requested with a ``POST``.

        The document ids are sent in the body, an empty list when not
        given, and the filter defaults to ``_doc_ids``.
        '''
        current = options.filter if options is not None else None
        if kw.get('filter', current) is None:
            kw['filter'] = DOC_IDS_FILTER
        options = self._options(options, kw)
        return await self.feed(dbname, options, 'POST')

    async def feed(self, dbname, options, method='GET'):
        '''Start a :class:`.FeedSession` for ``options``'''
        session = FeedSession(self.transport, method,
                              changes_path(dbname, options, method),
                              options,
                              body=encode_body(options, method))
        return await session.start()

    # DATABASE
    async def exists(self, dbname):
        '''Check that ``dbname`` exists.

        Raise :class:`.CouchDbNoDbError` if it does not and
        :class:`.HttpResponseError` for any other failure.
        '''
        response = await self.transport.head(self.path(dbname))
        if response.status_code == 404:
            raise CouchDbNoDbError('not_found', "Database doesn't exist.")
        elif not response.ok:
            raise HttpResponseError('HEAD %s - %s' % (
                dbname, response.status_code),
                status_code=response.status_code, response=response)
        return DatabasesResponse.from_response(response)

    def info(self, dbname):
        return self.request('get', dbname)

    def create(self, dbname, q=8):
        '''Create a new database ``dbname`` with ``q`` shards.

        Names must begin with a lowercase letter and contain only lowercase
        letters, digits and any of the characters ``_$()+-/``.
        '''
        if not valid_database_name(dbname):
            raise ValueError('Incorrect database name "%s"' % dbname)
        return self.request('put', dbname, q=q)

    def delete(self, dbname):
        return self.request('delete', dbname)

    # DOCUMENTS
    def create_document(self, dbname, document, batch=None, headers=None):
        '''Create a new ``document`` in ``dbname``.

        :param batch: set to ``ok`` for batch mode writes.
        '''
        return self.request('post', dbname, body=document, headers=headers,
                            batch=batch)

    def all_documents(self, dbname, **params):
        '''All documents of ``dbname``, ``params`` are the query
        parameters of ``_all_docs``'''
        return self.request('get', dbname, '_all_docs', **params)

    def documents_by_keys(self, dbname, keys=None):
        body = {'keys': keys} if keys is not None else None
        return self.request('post', dbname, '_all_docs', body=body)

    def all_design_documents(self, dbname, **params):
        return self.request('get', dbname, '_design_docs', **params)

    def design_documents_by_keys(self, dbname, keys):
        return self.request('post', dbname, '_design_docs',
                            body={'keys': keys})

    def queries(self, dbname, queries):
        '''Execute multiple ``_all_docs`` ``queries`` in one request'''
        return self.request('post', dbname, '_all_docs', 'queries',
                            body={'queries': queries})

    def bulk_get(self, dbname, docs, revs=False):
        return self.request('post', dbname, '_bulk_get', body={'docs': docs},
                            revs=revs)

    def bulk_documents(self, dbname, docs, new_edits=True, headers=None):
        '''Bulk update/insert of documents in a database
        '''
        return self.request('post', dbname, '_bulk_docs',
                            body={'docs': docs, 'new_edits': new_edits},
                            headers=headers)

    def find(self, dbname, selector, **kw):
        '''Find documents matching a Mango ``selector``'''
        return self.request('post', dbname, '_find',
                            body=find_body(selector, **kw))

    def explain(self, dbname, selector, **kw):
        return self.request('post', dbname, '_explain',
                            body=find_body(selector, **kw))

    # INDEXES AND VIEWS
    def create_index(self, dbname, fields, ddoc=None, name=None,
                     type='json', partial_filter_selector=None):
        body = {'index': {'fields': fields}, 'type': type}
        if ddoc is not None:
            body['ddoc'] = ddoc
        if name is not None:
            body['name'] = name
        if partial_filter_selector is not None:
            body['partial_filter_selector'] = partial_filter_selector
        return self.request('post', dbname, '_index', body=body)

    def indexes(self, dbname):
        return self.request('get', dbname, '_index')

    def delete_index(self, dbname, ddoc, name):
        return self.request('delete', dbname, '_index', ddoc, 'json', name)

    def query_view(self, dbname, ddoc, view, keys):
        '''Query ``view`` of design document ``ddoc`` for ``keys``'''
        return self.request('post', dbname, '_design', ddoc, '_view', view,
                            body={'keys': keys})

    # SHARDS
    def shards(self, dbname):
        return self.request('get', dbname, '_shards')

    def shard(self, dbname, docid):
        return self.request('get', dbname, '_shards', docid)

    def sync_shards(self, dbname):
        return self.request('post', dbname, '_sync_shards')

    # MAINTENANCE
    def compact(self, dbname):
        return self.request('post', dbname, '_compact')

    def compact_views(self, dbname, ddoc):
        return self.request('post', dbname, '_compact', ddoc)

    def ensure_full_commit(self, dbname):
        return self.request('post', dbname, '_ensure_full_commit')

    def view_cleanup(self, dbname):
        return self.request('post', dbname, '_view_cleanup')

    # SECURITY AND REVISIONS
    def security(self, dbname):
        return self.request('get', dbname, '_security')

    def set_security(self, dbname, security):
        return self.request('put', dbname, '_security', body=security)

    def purge(self, dbname, docs):
        return self.request('post', dbname, '_purge', body=docs)

    def purged_infos_limit(self, dbname):
        return self.request('get', dbname, '_purged_infos_limit')

    def set_purged_infos_limit(self, dbname, limit):
        return self.request('put', dbname, '_purged_infos_limit', body=limit)

    def missing_revs(self, dbname, revs):
        return self.request('post', dbname, '_missing_revs', body=revs)

    def revs_diff(self, dbname, revs):
        return self.request('post', dbname, '_revs_diff', body=revs)

    def revs_limit(self, dbname):
        return self.request('get', dbname, '_revs_limit')

    def set_revs_limit(self, dbname, limit):
        '''Sets the maximum number of document revisions tracked by
        CouchDB, even after compaction has occurred'''
        return self.request('put', dbname, '_revs_limit', body=limit)

    # INTERNALS
    def path(self, *bits, **params):
        path = '/'.join(quote(bit, safe='') for bit in bits)
        query = [(name, query_value(name, value))
                 for name, value in params.items() if value is not None]
        if query:
            path = '%s?%s' % (path, urlencode(query))
        return path

    async def request(self, method, *bits, body=None, headers=None,
                      **params):
        '''Execute a one-shot request and return a
        :class:`.DatabasesResponse`.

        A CouchDB error body raises the matching :class:`.CouchDbError`.
        '''
        path = self.path(*bits, **params)
        response = await self.transport.request(method.upper(), path, body,
                                                 headers)
        LOGGER.debug('%s %s - %s', method.upper(), path,
                     response.status_code)
        if response.error:
            couch_db_error(**response.json)
        elif not response.ok:
            raise HttpResponseError('%s %s - %s' % (
                method.upper(), path, response.status_code),
                status_code=response.status_code, body=response.json,
                response=response)
        return DatabasesResponse.from_response(response)

    def _options(self, options, kw):
        if options is None:
            return FeedOptions(**kw)
        return options.replace(**kw) if kw else options
