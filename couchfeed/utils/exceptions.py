'''
A list of all Exception specific to couchfeed library.
'''
__all__ = ['CouchFeedException',
           'ImproperlyConfigured',
           #
           # Transport exceptions
           'TransportError',
           'HttpConnectionError',
           'HttpResponseError',
           #
           # Feed exceptions
           'FeedDecodeError',
           #
           # CouchDB exceptions
           'CouchDbError',
           'CouchDbNoDbError',
           'CouchDbNoViewError',
           'CouchDbConflictError',
           'couch_db_error']


class CouchFeedException(Exception):
    '''Base class of all couchfeed exceptions.'''


class ImproperlyConfigured(CouchFeedException):
    '''A :class:`CouchFeedException` raised when an inconsistent
    configuration has occured.

    .. attribute:: exit_code

        the exit code when rising this exception is set to 2. The command
        line logs the error rather than the full stack trace.
    '''
    exit_code = 2


# #################################################################### HTTP
class TransportError(IOError):
    "Base for all errors raised by the transport"
    def __init__(self, *args, **kwargs):
        """
        Initialize TransportError with `request` and `response` objects.
        """
        response = kwargs.pop('response', None)
        self.response = response
        self.request = kwargs.pop('request', None)
        if (response is not None and not self.request and
                hasattr(response, 'request')):
            self.request = self.response.request
        super().__init__(*args, **kwargs)


class HttpConnectionError(TransportError):
    """A connection could not be established or was lost."""


class HttpResponseError(TransportError):
    """The server answered with a non successful status code.

    .. attribute:: status_code

        the HTTP status code of the response

    .. attribute:: body

        the decoded error body, usually a dictionary with ``error`` and
        ``reason`` keys
    """
    def __init__(self, msg, status_code=None, body=None, **kwargs):
        self.status_code = status_code
        self.body = body
        super().__init__(msg, **kwargs)


# #################################################################### FEED
class FeedDecodeError(CouchFeedException, ValueError):
    '''A record of a changes feed could not be decoded.

    .. attribute:: mode

        the feed mode of the decoder which failed

    .. attribute:: record

        the raw text which could not be decoded
    '''
    def __init__(self, msg, mode=None, record=None):
        self.mode = mode
        self.record = record
        super().__init__(msg)


# ################################################################# COUCHDB
class CouchDbError(CouchFeedException):

    def __init__(self, error, reason):
        self.error = error
        self.reason = reason
        super().__init__(reason)


class CouchDbNoDbError(CouchDbError):
    pass


class CouchDbNoViewError(CouchDbError):
    pass


class CouchDbConflictError(CouchDbError):
    pass


error_classes = {'no_db_file': CouchDbNoDbError,
                 'Database does not exist.': CouchDbNoDbError,
                 'missing_named_view': CouchDbNoViewError,
                 'conflict': CouchDbConflictError}


def couch_db_error(error=None, reason=None, **params):
    error_class = error_classes.get(
        reason, error_classes.get(error, CouchDbError))
    raise error_class(error, reason)
