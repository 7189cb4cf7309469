from .databases import Databases
from .utils.config import Config
from .utils.exceptions import ImproperlyConfigured
from .utils.importer import module_attribute


class CouchDB:
    '''CouchDB_ client handle.

    This is a lightweight object which wraps a :class:`.Transport` and
    exposes the per-database API via :attr:`databases`::

        async with CouchDB('http://127.0.0.1:5984') as couch:
            info = await couch.info()
            session = await couch.databases.changes('mydb')

    :param address: server address, defaults to the ``couchdb_server``
        setting.
    :param transport: an already built :class:`.Transport`, when not given
        one is created from the ``transport`` setting.
    :param cfg: optional :class:`.Config`.

    .. _CouchDB: http://couchdb.apache.org/
    '''
    __slots__ = ('cfg', 'transport', 'databases')

    def __init__(self, address=None, transport=None, cfg=None, **kw):
        self.cfg = cfg or Config()
        if transport is None:
            transport_class = module_attribute(self.cfg.transport, safe=True)
            if transport_class is None:
                raise ImproperlyConfigured(
                    'Could not load transport "%s"' % self.cfg.transport)
            transport = transport_class(
                address or self.cfg.couchdb_server,
                user=self.cfg.couchdb_user,
                password=self.cfg.couchdb_password,
                timeout=self.cfg.request_timeout,
                **kw)
        self.transport = transport
        self.databases = Databases(transport)

    def __repr__(self):
        return '%s(%s)' % (self.__class__.__name__, self.transport.address)
    __str__ = __repr__

    # SERVER API
    def info(self):
        '''Information about the running server
        '''
        return self.databases.request('get')
    ping = info

    def all_databases(self):
        '''Return a list of all databases'''
        return self.databases.request('get', '_all_dbs')

    def close(self):
        return self.transport.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
