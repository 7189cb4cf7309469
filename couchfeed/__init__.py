"""Asynchronous CouchDB database accessor and changes feed consumer"""
from .utils.version import get_version


VERSION = (0, 1, 0, 'final', 0)

__version__ = version = get_version(VERSION)
__author__ = 'couchfeed developers'

from .utils.exceptions import *     # noqa
from .utils.config import *         # noqa
from .query import FeedOptions, FEED_MODES      # noqa
from .response import ApiResponse, DatabasesResponse, ChangeEvent    # noqa
from .feed import FeedSession, FeedDecoder, register_decoder    # noqa
from .transport import Transport, HttpTransport     # noqa
from .databases import Databases    # noqa
from .client import CouchDB         # noqa
