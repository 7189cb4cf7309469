'''Response envelopes returned by every couchfeed operation.

:class:`ApiResponse` is what the :class:`.Transport` returns for a buffered
request, :class:`DatabasesResponse` is the envelope handed to callers of
:class:`.Databases` operations and of changes feeds. Events of a changes
feed are not fresh HTTP exchanges, their envelopes carry no status code and
an empty set of headers.
'''
from collections import namedtuple

from multidict import CIMultiDict

from .utils.exceptions import couch_db_error


__all__ = ['ApiResponse',
           'DatabasesResponse',
           'ChangeEvent',
           'normalize']


def is_succesful(status):
    '''2xx status is succesful'''
    return status >= 200 and status < 300


class ApiResponse:
    '''The standard response envelope.

    .. attribute:: json

        The decoded body, a dictionary, a list or a scalar.

    .. attribute:: status_code

        The HTTP status code or ``None`` for synthetic envelopes.

    .. attribute:: headers

        Response headers as a :class:`~multidict.CIMultiDict`.
    '''
    __slots__ = ('json', 'status_code', 'headers')

    def __init__(self, json=None, status_code=None, headers=None):
        self.json = json
        self.status_code = status_code
        self.headers = CIMultiDict(headers or ())

    def __repr__(self):
        return '<%s [%s]>' % (self.__class__.__name__,
                              self.status_code or 'None')
    __str__ = __repr__

    @property
    def ok(self):
        '''``True`` when the response is not an HTTP error'''
        if self.status_code:
            return is_succesful(self.status_code)
        return not self.error

    @property
    def error(self):
        if isinstance(self.json, dict):
            return self.json.get('error')

    @property
    def reason(self):
        if isinstance(self.json, dict):
            return self.json.get('reason')

    def get(self, key, default=None):
        if isinstance(self.json, dict):
            return self.json.get(key, default)
        return default

    def __getitem__(self, key):
        return self.json[key]

    def __contains__(self, key):
        return isinstance(self.json, dict) and key in self.json

    def raise_for_error(self):
        '''Raise a :class:`.CouchDbError` if the body is a CouchDB error
        '''
        if self.error:
            couch_db_error(**self.json)
        return self


class DatabasesResponse(ApiResponse):
    '''Envelope for the result of database operations and feed events
    '''
    __slots__ = ()

    @classmethod
    def from_response(cls, response):
        return cls(response.json, response.status_code, response.headers)

    @property
    def results(self):
        '''List of change results, empty if not a changes response'''
        return self.get('results') or []

    @property
    def last_seq(self):
        return self.get('last_seq')

    @property
    def pending(self):
        return self.get('pending')

    @property
    def rows(self):
        return self.get('rows') or []

    @property
    def docs(self):
        return self.get('docs') or []

    @property
    def changes(self):
        '''The :attr:`results` as a list of :class:`ChangeEvent`'''
        return [ChangeEvent.from_result(r) for r in self.results]


class ChangeEvent(namedtuple('ChangeEvent',
                             'seq id changes deleted doc event_id')):
    '''One change of a changes feed.

    ``event_id`` is the ``id`` field of an eventsource record and ``None``
    for the other feed modes.
    '''
    __slots__ = ()

    @classmethod
    def from_result(cls, result):
        event_id = None
        if 'data' in result:
            event_id = result.get('id')
            result = result['data'] or {}
        return cls(result.get('seq'),
                   result.get('id'),
                   result.get('changes') or [],
                   bool(result.get('deleted', False)),
                   result.get('doc'),
                   event_id)

    @property
    def revs(self):
        return [c['rev'] for c in self.changes if 'rev' in c]


def normalize(fragment):
    '''Wrap a decoded feed ``fragment`` into a :class:`DatabasesResponse`
    '''
    return DatabasesResponse(fragment)
