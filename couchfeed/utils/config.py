"""Settings of couchfeed clients.

A :class:`Config` is a container of :class:`Setting` instances. Settings are
declared as :class:`Setting` subclasses which register themselves when the
module is imported; a :class:`Config` picks the global ones plus those of
the ``apps`` it is built for. Values come from, in order of precedence, the
command line, a python config file and the setting defaults::

    cfg = Config(apps=['feed'])
    cfg.parse_command_line(['mydb', '--feed', 'longpoll'])
    cfg.feed        # 'longpoll'

Command line parsing uses the argparser_ standard library module.

.. _argparser: http://docs.python.org/dev/library/argparse.html
"""
import argparse
import textwrap
import logging
import pickle
import types

from .string import camel_to_dash
from .importer import import_system_file
from .log import configured_logger


__all__ = ['Config',
           'Setting',
           'ordered_settings',
           'validate_string',
           'validate_bool',
           'validate_list',
           'validate_dict',
           'validate_pos_int',
           'validate_pos_float']

KNOWN_SETTINGS = {}
KNOWN_SETTINGS_ORDER = []

# values of a config file which can be kept as extra parameters
simple_values = (list, tuple, float, int, dict, str, types.FunctionType)


def ordered_settings():
    for name in KNOWN_SETTINGS_ORDER:
        yield KNOWN_SETTINGS[name]


def static_validator(func):
    # validators are plain functions stored as class attributes
    def _(setting, value):
        return func(value)
    return _


def picklable(value):
    if not isinstance(value, simple_values):
        return False
    try:
        pickle.loads(pickle.dumps(value))
    except Exception:
        return False
    return True


class Config:
    """Container of :class:`Setting` values.

    Setting values are available as attributes, ``cfg.since``, while
    assignment goes through :meth:`set` so that values are validated.

    :param description: command line description.
    :param epilog: command line epilog.
    :param version: version displayed by ``--version``, defaults to the
        couchfeed version.
    :param apps: groups of settings loaded in addition to the global ones,
        for example ``['feed']``.
    :param include: when given, only these settings are exposed on the
        command line, the others are stored in :attr:`params`.
    :param exclude: settings stored in :attr:`params` rather than exposed.
    :param name: name of this configuration, used for the logger name.
    :param params: initial values, they also become the defaults.

    .. attribute:: settings

        Dictionary of :class:`Setting` by :attr:`Setting.name`.

    .. attribute:: params

        Dictionary of extra parameters, not available on the command line.
    """
    exclude_from_config = frozenset(('config',))

    def __init__(self, description=None, epilog=None, version=None,
                 apps=None, include=None, exclude=None, settings=None,
                 name=None, **params):
        self.settings = {} if settings is None else settings
        self.params = {}
        self.name = name
        self.apps = set(apps or ())
        self.include = set(include or ())
        self.exclude = set(exclude or ())
        if settings is None:
            self._load_settings()
        self.description = description or 'CouchDB changes feed client'
        self.epilog = epilog
        if not version:
            from couchfeed import __version__ as version
        self.version = version
        self.update(params, True)

    def __repr__(self):
        return '%s(%s)' % (self.__class__.__name__, self.name or 'couchfeed')

    def __iter__(self):
        return iter(self.settings)

    def __contains__(self, name):
        return name in self.settings

    def __getstate__(self):
        return self.__dict__.copy()

    def __setstate__(self, state):
        self.__dict__.update(state)

    def __getattr__(self, name):
        try:
            return self._get(name)
        except KeyError:
            raise AttributeError("'%s' object has no attribute '%s'" %
                                 (self.__class__.__name__, name)) from None

    def __setattr__(self, name, value):
        if name != 'settings' and name in self.settings:
            raise AttributeError('Use set to change the "%s" setting' % name)
        super().__setattr__(name, value)

    def get(self, name, default=None):
        """Value of setting ``name``, of parameter ``name`` when it is not
        a setting, or ``default``."""
        try:
            return self._get(name, default)
        except KeyError:
            return default

    def set(self, name, value, default=False, imported=False):
        """Validate and set ``value`` for ``name``.

        Names which are not settings become :attr:`params`, unless the value
        was ``imported`` from a config file.
        """
        if name in self.__dict__:
            self.__dict__[name] = value
        elif name in self.settings:
            self.settings[name].set(value, default=default, imported=imported)
        elif not imported:
            self.params[name] = value

    def update(self, data, default=False):
        """Set all not ``None`` values of the ``data`` mapping"""
        for name, value in data.items():
            if value is not None:
                self.set(name, value, default)

    def parser(self):
        """An :class:`argparse.ArgumentParser` for all :attr:`settings`
        """
        parser = argparse.ArgumentParser(description=self.description,
                                         epilog=self.epilog)
        parser.add_argument('--version', action='version',
                            version=self.version)
        return self.add_to_parser(parser)

    def add_to_parser(self, parser):
        settings = sorted(self.settings.values(),
                          key=lambda s: (s.section, s.order))
        for setting in settings:
            setting.add_argument(parser)
        return parser

    def import_from_module(self, mod=None):
        """Load setting values from the python config file ``mod``,
        the ``config`` setting when not given.

        Return the list of ``(name, value)`` pairs of the file which are
        not settings.
        """
        if mod:
            self.set('config', mod)
        try:
            module = import_system_file(self.config)
        except Exception as exc:
            raise RuntimeError('Failed to read config file "%s". %s' %
                               (self.config, exc)) from exc
        unknowns = []
        for key in dir(module) if module else ():
            name = key.lower()
            if key.startswith('_') or name in self.exclude_from_config:
                continue
            value = getattr(module, key)
            if name in self.settings:
                self.set(name, value, True, True)
            elif picklable(value):
                unknowns.append((key, value))
        return unknowns

    def parse_command_line(self, argv=None):
        """Parse ``argv``, the system arguments when not given.

        The config file, if any, is loaded first so that command line
        values take precedence.
        """
        if self.config:
            pre = argparse.ArgumentParser(add_help=False)
            self.settings['config'].add_argument(pre)
            opts, _ = pre.parse_known_args(argv)
            if opts.config is not None:
                self.set('config', opts.config)
            self.params.update(self.import_from_module())

        opts = self.parser().parse_args(argv)
        for name, value in vars(opts).items():
            if value is not None:
                self.set(name.lower(), value)

    def copy(self, name=None):
        """A copy of this container with copies of its settings"""
        cls = self.__class__
        clone = cls.__new__(cls)
        clone.__dict__.update(self.__dict__)
        if name:
            clone.name = name
        clone.settings = dict(((n, s.copy()) for n, s in
                               self.settings.items()))
        clone.params = self.params.copy()
        return clone

    def configured_logger(self, name=None):
        """Configure loggers from the ``log_level`` setting and return the
        logger of this configuration.

        Each ``log_level`` entry is a level optionally prefixed by a logger
        namespace, ``couchfeed.feed.debug`` sets the ``couchfeed.feed``
        logger to debug while ``info`` sets the root logger.
        """
        if not name:
            name = 'couchfeed'
            if self.name and self.name != name:
                name = '%s.%s' % (name, self.name)
        namespaces = {}
        for log_level in self.log_level or ():
            bits = log_level.split('.')
            namespaces['.'.join(bits[:-1])] = bits[-1]
        for namespace in sorted(namespaces):
            configured_logger(namespace,
                              config=self.log_config,
                              level=namespaces[namespace],
                              handlers=self.log_handlers)
        return logging.getLogger(name)

    def __copy__(self):
        return self.copy()

    def __deepcopy__(self, memo):
        return self.copy()

    # INTERNALS
    def _load_settings(self):
        for setting_class in ordered_settings():
            setting = setting_class()
            if setting.name in self.settings:
                continue
            if setting.app and setting.app not in self.apps:
                continue
            if ((self.include and setting.name not in self.include) or
                    setting.name in self.exclude):
                self.params[setting.name] = setting.get()
            else:
                self.settings[setting.name] = setting

    def _get(self, name, default=None):
        if name in self.settings:
            return self.settings[name].get()
        elif name in self.params:
            return self.params[name]
        elif name in KNOWN_SETTINGS:
            # a setting of an app not loaded
            return default
        raise KeyError(name)


class SettingMeta(type):
    """Register :class:`Setting` subclasses in ``KNOWN_SETTINGS``.

    Classes declared with ``virtual = True`` are base classes and are not
    registered. A subclass with the name of a registered setting replaces
    it and keeps its position.
    """
    def __new__(cls, name, bases, attrs):
        validator = attrs.get('validator')
        attrs['validator'] = static_validator(validator) if validator else None
        virtual = attrs.pop('virtual', False)
        new_class = super().__new__(cls, name, bases, attrs)
        if virtual:
            return new_class
        new_class.fmt_desc(attrs.get('desc') or '')
        if not attrs.get('name'):
            new_class.name = camel_to_dash(name)
        previous = KNOWN_SETTINGS.get(new_class.name)
        if previous is not None:
            new_class.order = previous.order
        else:
            new_class.order = len(KNOWN_SETTINGS_ORDER) + 1
            KNOWN_SETTINGS_ORDER.append(new_class.name)
        KNOWN_SETTINGS[new_class.name] = new_class
        return new_class

    def fmt_desc(cls, desc):
        cls.desc = textwrap.dedent(desc).strip()
        cls.short = cls.desc.split('\n\n')[0]


class Setting(metaclass=SettingMeta):
    """A configuration parameter.

    Subclasses declare the parameter with class attributes:

    * ``name`` the key in a :class:`Config`, derived from the class name
      when not given;
    * ``validator`` a function which validates and converts values;
    * ``default`` the default value;
    * ``app`` the group of settings this setting belongs to, ``None`` for
      global settings;
    * ``section`` the title of the group in the help text;
    * ``flags``, ``nargs``, ``choices``, ``type``, ``meta``, ``action`` and
      ``const`` are passed to :meth:`argparse.ArgumentParser.add_argument`.
      A setting without ``flags`` is a positional argument if it has
      ``nargs``, otherwise it is not available on the command line;
    * ``desc`` the description, its first paragraph is the help text.
    """
    virtual = True
    name = None
    validator = None
    default = None
    value = None
    imported = False
    app = None
    section = None
    flags = None
    nargs = None
    choices = None
    type = None
    meta = None
    action = None
    const = None
    desc = None
    short = None

    def __init__(self):
        self.section = self.section or self.app or 'unknown'
        self.modified = False
        if self.default is not None:
            self.set(self.default)
            self.modified = False

    def __getstate__(self):
        state = self.__dict__.copy()
        if self.imported:
            # imported values are loaded again from the config file
            for key in ('imported', 'value', 'default'):
                state.pop(key, None)
        return state

    def __repr__(self):
        return '%s (%s)' % (self.name, self.value)
    __str__ = __repr__

    def get(self):
        return self.value

    def set(self, value, default=False, imported=False):
        """Validate and set ``value``, also as :attr:`default` when
        ``default`` is ``True``."""
        if self.validator:
            value = self.validator(value)
        self.value = value
        self.imported = imported
        if default:
            self.default = value
        self.modified = True

    def add_argument(self, parser):
        """Add this setting to the argument ``parser``, if it has
        ``flags`` or ``nargs``.

        Flagged arguments have no default so that values not given on the
        command line are not overwritten.
        """
        kwargs = {}
        for key in ('choices', 'const', 'type', 'nargs'):
            value = getattr(self, key)
            if value is not None:
                kwargs[key] = value
        if self.flags:
            args = tuple(self.flags)
            kwargs.update(dest=self.name,
                          action=self.action or 'store',
                          default=None,
                          help='%s [%s]' % (self.short, self.default))
            if kwargs['action'] != 'store':
                kwargs.pop('type', None)
                kwargs.pop('nargs', None)
        elif self.nargs and self.name:
            args = (self.name,)
            kwargs['help'] = self.short
        else:
            return
        if self.meta:
            kwargs['metavar'] = self.meta
        parser.add_argument(*args, **kwargs)

    def copy(self):
        setting = self.__class__.__new__(self.__class__)
        setting.__dict__.update(self.__dict__)
        return setting

    def __copy__(self):
        return self.copy()

    def __deepcopy__(self, memo):
        return self.copy()


def validate_bool(val):
    if isinstance(val, (bool, int)):
        return bool(val)
    if not isinstance(val, str):
        raise TypeError('Cannot convert %r to a boolean' % val)
    text = val.strip().lower()
    if text in ('true', 'false'):
        return text == 'true'
    raise ValueError('Invalid boolean: %s' % val)


def validate_pos_int(val):
    val = int(val if not isinstance(val, str) else int(val, 0))
    if val < 0:
        raise ValueError('Value must be positive: %s' % val)
    return val


def validate_pos_float(val):
    val = float(val)
    if val < 0:
        raise ValueError('Value must be positive: %s' % val)
    return val


def validate_string(val):
    if val is None:
        return None
    if not isinstance(val, str):
        raise TypeError('Not a string: %r' % val)
    return val.strip()


def validate_list(val):
    if val and not isinstance(val, (list, tuple)):
        raise TypeError('Not a list: %r' % val)
    return list(val)


def validate_dict(val):
    if val and not isinstance(val, dict):
        raise TypeError('Not a dictionary: %r' % val)
    return val


############################################################################
#    Global Client Settings
#    How the server is reached and how the client logs


class Global(Setting):
    virtual = True
    section = "Global Client Settings"


class ConfigFile(Global):
    name = "config"
    flags = ["-c", "--config"]
    meta = "FILE"
    validator = validate_string
    default = 'config.py'
    desc = """\
        The path to a couchfeed config file, where default Settings
        paramaters can be specified.
        """


class CouchDbServer(Global):
    name = 'couchdb_server'
    flags = ['--couchdb-server']
    meta = "CONNECTION_STRING"
    validator = validate_string
    default = 'http://127.0.0.1:5984'
    desc = 'Address of the CouchDB server'


class CouchDbUser(Global):
    name = 'couchdb_user'
    flags = ['--couchdb-user']
    meta = "USER"
    validator = validate_string
    desc = """\
        User name passed to the transport.

        The transport uses it, together with the password, for basic
        authentication.
        """


class CouchDbPassword(Global):
    name = 'couchdb_password'
    flags = ['--couchdb-password']
    validator = validate_string
    desc = """Password passed to the transport"""


class Transport(Global):
    flags = ['--transport']
    meta = "DOTTED_PATH"
    validator = validate_string
    default = 'couchfeed.transport:HttpTransport'
    desc = """\
        The transport class used to reach the server.

        A dotted path to a :class:`.Transport` subclass.
        """


class RequestTimeout(Global):
    flags = ['--request-timeout']
    type = float
    validator = validate_pos_float
    default = 0
    desc = """\
        Timeout in seconds for one-shot requests.

        Streamed requests are never timed out by the client, a value of 0
        means no timeout.
        """


class Debug(Global):
    flags = ["--debug"]
    validator = validate_bool
    action = "store_true"
    default = False
    desc = """\
        Turn on debugging.

        Set the log level to debug.
        """


class LogLevel(Global):
    flags = ["--log-level"]
    nargs = '+'
    default = ['info']
    validator = validate_list
    desc = """
        The granularity of log outputs.

        This setting controls loggers with ``couchfeed`` namespace
        and the the root logger (if not already set).
        Valid level names are:

        * debug
        * info
        * warning
        * error
        * critical
        * none
        """


class LogHandlers(Global):
    flags = ["--log-handlers"]
    nargs = '+'
    default = ['console']
    validator = validate_list
    desc = """Log handlers for couchfeed"""


class LogConfig(Global):
    default = {}
    validator = validate_dict
    desc = """
    The logging configuration dictionary.

    This settings can only be specified on a config file and therefore
    no command-line parameter is available.
    """


############################################################################
#    Changes Feed
#    Options of the couchfeed command line


class FeedSetting(Setting):
    virtual = True
    app = 'feed'
    section = "Changes Feed"


class Database(FeedSetting):
    nargs = '?'
    meta = 'DATABASE'
    validator = validate_string
    desc = """Name of the database to follow"""


class Feed(FeedSetting):
    flags = ['--feed']
    choices = ('normal', 'longpoll', 'continuous', 'eventsource')
    validator = validate_string
    default = 'continuous'
    desc = """Type of changes feed"""


class Since(FeedSetting):
    flags = ['--since']
    meta = 'SEQUENCE'
    validator = validate_string
    default = '0'
    desc = """\
        Start the results from the change immediately after the given
        update sequence.

        Use ``now`` to start from the current sequence.
        """


class Heartbeat(FeedSetting):
    flags = ['--heartbeat']
    type = int
    validator = validate_pos_int
    default = 60000
    desc = """Period in milliseconds after which an empty line is sent"""


class FeedTimeout(FeedSetting):
    name = 'feed_timeout'
    flags = ['--feed-timeout']
    type = int
    validator = validate_pos_int
    default = 60000
    desc = """\
        Maximum period in milliseconds to wait for a change before the
        response is sent.
        """


class Style(FeedSetting):
    flags = ['--style']
    choices = ('main_only', 'all_docs')
    validator = validate_string
    default = 'main_only'
    desc = """How many revisions are returned in the changes array"""


class IncludeDocs(FeedSetting):
    name = 'include_docs'
    flags = ['--include-docs']
    validator = validate_bool
    action = "store_true"
    default = False
    desc = """Include the associated document with each result"""


class Filter(FeedSetting):
    flags = ['--filter']
    meta = 'DESIGNDOC/FILTER'
    validator = validate_string
    desc = """Reference to a filter function"""


class DocIds(FeedSetting):
    name = 'doc_ids'
    flags = ['--doc-ids']
    nargs = '+'
    default = []
    validator = validate_list
    desc = """\
        Only return changes of these document ids.

        When given, the feed is requested with a POST and the ``_doc_ids``
        filter.
        """


class Limit(FeedSetting):
    flags = ['--limit']
    type = int
    validator = validate_pos_int
    default = 0
    desc = """Limit number of result rows, 0 for no limit"""
