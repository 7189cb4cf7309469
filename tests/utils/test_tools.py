'''Importer, version and string utilities'''
import os
import tempfile
import unittest

from couchfeed import CouchDB, Config, ImproperlyConfigured, HttpTransport
from couchfeed.utils.importer import module_attribute, import_system_file
from couchfeed.utils.version import get_version
from couchfeed.utils.string import camel_to_dash


class TestImporter(unittest.TestCase):

    def test_module_attribute(self):
        self.assertEqual(
            module_attribute('couchfeed.transport:HttpTransport'),
            HttpTransport)
        self.assertEqual(module_attribute('couchfeed.transport.HttpTransport'),
                         HttpTransport)
        self.assertRaises(AttributeError, module_attribute,
                          'couchfeed.transport:Foo')
        self.assertRaises(ImportError, module_attribute, 'couchfeed')
        self.assertRaises(ImportError, module_attribute, None)
        self.assertEqual(module_attribute('foo.bla:x', 5, safe=True), 5)

    def test_import_system_file(self):
        fd, name = tempfile.mkstemp(suffix='.py')
        with os.fdopen(fd, 'w') as f:
            f.write('value = 3\n')
        try:
            self.assertEqual(import_system_file(name).value, 3)
        finally:
            os.remove(name)
        self.assertEqual(import_system_file('foo_not_available'), None)
        self.assertRaises(ImportError, import_system_file,
                          'foo_not_available', False)

    def test_bad_transport(self):
        cfg = Config(transport='couchfeed.transport:Foo')
        with self.assertRaises(ImproperlyConfigured) as cm:
            CouchDB(cfg=cfg)
        self.assertEqual(cm.exception.exit_code, 2)


class TestVersion(unittest.TestCase):

    def test_get_version(self):
        self.assertEqual(get_version((0, 1, 0, 'final', 0)), '0.1.0')
        self.assertEqual(get_version((1, 2, 3, 'beta', 2)), '1.2.3b2')
        self.assertEqual(get_version((1, 2, 3, 'rc', 1)), '1.2.3rc1')
        self.assertEqual(get_version((1, 2, 3, 'alpha', 1)), '1.2.3a1')
        self.assertTrue(get_version((1, 0, 0, 'alpha', 0)).startswith('1.0.0'))
        self.assertRaises(AssertionError, get_version, (1, 0, 0, 'gamma', 0))


class TestString(unittest.TestCase):

    def test_camel_to_dash(self):
        self.assertEqual(camel_to_dash('CouchDbServer'), 'couch_db_server')
        self.assertEqual(camel_to_dash('Feed'), 'feed')
        self.assertEqual(camel_to_dash('RequestTimeout'), 'request_timeout')
