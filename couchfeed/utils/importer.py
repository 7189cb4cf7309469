'''Loading of python objects from dotted paths and config files.'''
import os
import re
import sys
import importlib.util
from importlib import import_module


def load_source(filename):
    '''Execute the python file ``filename`` as a module'''
    name = re.sub(r'\W+', '.', os.path.splitext(filename)[0]).strip('.')
    spec = importlib.util.spec_from_file_location(name, filename)
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


def module_attribute(dotpath, default=None, safe=False):
    '''The attribute at ``dotpath``.

    ``dotpath`` is either ``package.module:attribute`` or
    ``package.module.attribute``. When ``safe`` is ``True``, ``default`` is
    returned if the attribute cannot be loaded.
    '''
    try:
        if not dotpath:
            raise ImportError('No path to import from')
        module_name, sep, attr = str(dotpath).partition(':')
        if not sep:
            module_name, _, attr = module_name.rpartition('.')
        if not module_name or not attr:
            raise ImportError('Could not find attribute in %s' % dotpath)
        return getattr(import_module(module_name), attr)
    except (ImportError, AttributeError):
        if not safe:
            raise
        return default


def import_system_file(mod, safe=True):
    '''Import ``mod``, a file path, a module name or a package directory.

    Return ``None`` if there is nothing to import and ``safe`` is ``True``.
    '''
    if os.path.isfile(mod):
        return load_source(mod)
    try:
        return import_module(mod)
    except ImportError:
        package = os.path.join(mod, '__init__.py')
        if os.path.isfile(package):
            return load_source(package)
        elif not safe:
            raise
