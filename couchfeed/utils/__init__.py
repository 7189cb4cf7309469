'''
Utilities used by couchfeed internals: configuration, logging, exceptions
and versioning. This module is independent from the rest of couchfeed.
'''
