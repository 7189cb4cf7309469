'''Options of a changes feed and their encoding on the wire.

A changes feed can be requested with a ``GET``, where the document id filter
is a JSON array in the query string, or with a ``POST``, where the ids are
sent in the JSON body and the ``_doc_ids`` filter is selected by default.
'''
import json
from collections import namedtuple
from urllib.parse import urlencode, quote


__all__ = ['FeedOptions',
           'FEED_MODES',
           'DOC_IDS_FILTER',
           'encode_query',
           'encode_body',
           'changes_path']


FEED_MODES = ('normal', 'longpoll', 'continuous', 'eventsource')
DOC_IDS_FILTER = '_doc_ids'

# option name, query parameter
QUERY_PARAMETERS = (
    ('doc_ids', 'doc_ids'),
    ('conflicts', 'conflicts'),
    ('descending', 'descending'),
    ('feed', 'feed'),
    ('filter', 'filter'),
    ('heartbeat', 'heartbeat'),
    ('include_docs', 'include_docs'),
    ('attachments', 'attachments'),
    ('att_encoding_info', 'att_encoding_info'),
    ('last_event_id', 'last-event-id'),
    ('limit', 'limit'),
    ('since', 'since'),
    ('style', 'style'),
    ('timeout', 'timeout'),
    ('view', 'view'),
    ('seq_interval', 'seq_interval')
)

_defaults = dict(doc_ids=None,
                 conflicts=False,
                 descending=False,
                 include_docs=False,
                 attachments=False,
                 att_encoding_info=False,
                 update_seq=False,
                 feed='normal',
                 filter=None,
                 heartbeat=60000,
                 timeout=60000,
                 since='0',
                 style='main_only',
                 limit=None,
                 seq_interval=None,
                 last_event_id=None,
                 view=None)


class FeedOptions(namedtuple('FeedOptions', tuple(_defaults))):
    '''Immutable options of a changes feed request.

    All fields are keyword arguments with the defaults of the CouchDB
    ``_changes`` endpoint::

        options = FeedOptions(feed='continuous', since='now')
        options.replace(since='12-g1AAAA')
    '''
    __slots__ = ()

    def __new__(cls, **kw):
        params = _defaults.copy()
        for name, value in kw.items():
            if name not in params:
                raise TypeError("'%s' is an invalid feed option" % name)
            params[name] = value
        if params['doc_ids'] is not None:
            params['doc_ids'] = tuple(params['doc_ids'])
        return super().__new__(cls, **params)

    def replace(self, **kw):
        params = self._asdict()
        params.update(kw)
        return self.__class__(**params)

    @property
    def streaming(self):
        '''``True`` when the feed delivers changes as they happen'''
        return self.feed in ('continuous', 'eventsource')


def to_query_value(value):
    if value is None:
        return ''
    elif isinstance(value, bool):
        return 'true' if value else 'false'
    return '%s' % value


def query_items(options, method='GET'):
    '''Generator of ``(name, value)`` query parameters in wire order
    '''
    for name, param in QUERY_PARAMETERS:
        value = getattr(options, name)
        if name == 'doc_ids':
            if method == 'GET' and value is not None:
                yield param, json.dumps(list(value))
        else:
            yield param, to_query_value(value)


def encode_query(options, method='GET'):
    '''Encode ``options`` as a query string for a ``method`` request
    '''
    return urlencode(list(query_items(options, method.upper())))


def encode_body(options, method='GET'):
    '''The JSON body of a ``method`` request or ``None``
    '''
    if method.upper() == 'POST':
        return {'doc_ids': list(options.doc_ids or ())}


def changes_path(dbname, options, method='GET'):
    '''Path and query string of the ``_changes`` endpoint of ``dbname``
    '''
    return '%s/_changes?%s' % (quote(dbname, safe=''),
                               encode_query(options, method))
