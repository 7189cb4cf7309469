'''
Logging configuration of couchfeed.

Loggers are configured with :func:`logging.config.dictConfig`, one namespace
at a time, from :data:`LOGGING_CONFIG` or a user supplied dictionary with the
same structure. Log records go to the standard error so that the standard
output is left to the data a command writes.
'''
import sys
import logging
from logging.config import dictConfig
from copy import deepcopy
from threading import Lock


LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': ('%(asctime)s [p=%(process)s, %(levelname)s,'
                       ' %(name)s] %(message)s'),
            'datefmt': '%H:%M:%S'
        },
        'level_message': {'format': '%(levelname)s - %(message)s'},
        'message': {'format': '%(message)s'}
    },
    'handlers': {
        'silent': {
            'class': 'couchfeed.utils.log.Silence',
        },
        'console': {
            'level': 'DEBUG',
            'class': 'couchfeed.utils.log.ColoredStream',
            'formatter': 'verbose'
        },
        'console_level_message': {
            'class': 'couchfeed.utils.log.ColoredStream',
            'formatter': 'level_message'
        },
        'console_message': {
            'class': 'couchfeed.utils.log.ColoredStream',
            'formatter': 'message'
        }
    },
    'loggers': {
        'asyncio': {
            'level': 'WARNING'
        },
        'aiohttp': {
            'level': 'WARNING'
        }
    }
}

_lock = Lock()
_state = {'config': None, 'configured': set()}


class Silence(logging.Handler):

    def emit(self, record):
        pass


def clear_logger():
    '''Forget configured namespaces, the next call to
    :func:`configured_logger` loads the configuration again'''
    with _lock:
        _state['config'] = None
        _state['configured'] = set()


def configured_logger(name=None, config=None, level=None, handlers=None):
    '''Configure the logger ``name`` and return it.

    The root logger is configured when ``name`` is empty. A namespace is
    configured once, later calls return the logger as it is. A level of
    ``none`` silences the logger.
    '''
    name = name or ''
    with _lock:
        if _state['config'] is None:
            _state['config'] = deepcopy(config or LOGGING_CONFIG)
        elif name in _state['configured']:
            return logging.getLogger(name)
        _state['configured'].add(name)

        level = get_level(level)
        if level == logging.NOTSET:
            handlers = ['silent']
        options = {'level': logging.getLevelName(level), 'propagate': False}
        if handlers:
            options['handlers'] = handlers

        config = dict(_state['config'])
        loggers = config.pop('loggers', None) or {}
        root = config.pop('root', None) or {}
        if name:
            logger = dict(loggers.get(name) or (), **options)
            config['loggers'] = {name: logger}
        else:
            logger = dict(root, **options)
            logger.pop('propagate')
            logger.setdefault('handlers', ['console'])
            config['loggers'] = loggers
            config['root'] = logger
        dictConfig(config)
        return logging.getLogger(name)


def get_level(level):
    '''Numeric logging level of ``level``, ``NOTSET`` for ``none`` and
    unknown names'''
    if level is None:
        return logging.NOTSET
    try:
        return int(level)
    except ValueError:
        value = logging.getLevelName(str(level).upper())
        return value if isinstance(value, int) else logging.NOTSET


class ColoredStream(logging.StreamHandler):   # pragma    nocover
    terminator = '\n'
    COLOURS = {'DEBUG': 36,
               'INFO': 32,
               'WARNING': 35,
               'ERROR': 31,
               'CRITICAL': 31}

    def __init__(self, stream=None):
        super().__init__(stream or sys.stderr)

    def format(self, record):
        text = super().format(record)
        isatty = getattr(self.stream, 'isatty', None)
        if isatty and isatty() and getattr(record, 'color', True):
            code = self.COLOURS.get(record.levelname, 37)
            text = '\x1b[%sm%s\x1b[0m' % (code, text)
        return text
