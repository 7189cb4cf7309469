#!/usr/bin/env python
import sys
import unittest


def run(argv=None):
    args = list(sys.argv[1:] if argv is None else argv)
    cov = None
    if '--coverage' in args:
        import coverage
        args.remove('--coverage')
        cov = coverage.Coverage(source=['couchfeed'])
        cov.start()
    result = runtests(*args)
    if cov is not None:
        cov.stop()
        cov.save()
        cov.report()
    sys.exit(not result.wasSuccessful())


def runtests(*labels, verbosity=2):
    loader = unittest.TestLoader()
    if labels:
        suite = loader.loadTestsFromNames(labels)
    else:
        suite = loader.discover('tests', pattern='test_*.py', top_level_dir='.')
    return unittest.TextTestRunner(verbosity=verbosity).run(suite)


if __name__ == '__main__':
    run()
