'''Follow the changes feed of a database from the command line::

    couchfeed mydb --since now --include-docs

Each change is written to the standard output as one JSON line.
'''
import sys
import json
import asyncio

from .client import CouchDB
from .utils.config import Config
from .utils.exceptions import (CouchFeedException, ImproperlyConfigured,
                               TransportError)


def feed_options(cfg):
    '''Feed options from the changes feed settings of ``cfg``'''
    return dict(feed=cfg.feed,
                since=cfg.since,
                heartbeat=cfg.heartbeat,
                timeout=cfg.feed_timeout,
                style=cfg.style,
                include_docs=cfg.include_docs,
                filter=cfg.filter,
                limit=cfg.limit or None,
                doc_ids=cfg.doc_ids or None)


async def follow(cfg, stream=None, client=None):
    '''Write the changes of the ``database`` setting to ``stream``.

    Return the number of changes written.
    '''
    stream = stream or sys.stdout
    logger = cfg.configured_logger()
    if not cfg.database:
        raise ImproperlyConfigured('A database name is required')
    options = feed_options(cfg)
    couch = client or CouchDB(cfg=cfg)
    count = 0
    async with couch:
        if cfg.doc_ids:
            session = await couch.databases.post_changes(cfg.database,
                                                         **options)
        else:
            session = await couch.databases.changes(cfg.database, **options)
        logger.info('following %s (%s feed)', cfg.database, session.mode)
        async with session:
            async for response in session:
                for result in response.results:
                    stream.write(json.dumps(result))
                    stream.write('\n')
                    count += 1
                stream.flush()
        logger.info('%d changes, last sequence %s', count, session.last_seq)
    return count


def main(argv=None):
    cfg = Config(apps=['feed'],
                 description='Follow the changes feed of a CouchDB database')
    cfg.parse_command_line(argv)
    if cfg.debug:
        cfg.set('log_level', ['debug'])
    logger = cfg.configured_logger()
    try:
        asyncio.run(follow(cfg))
    except KeyboardInterrupt:
        logger.info('bye')
    except ImproperlyConfigured as exc:
        logger.error(str(exc))
        return exc.exit_code
    except (CouchFeedException, TransportError) as exc:
        logger.error('%s: %s', exc.__class__.__name__, exc)
        return 1
    return 0
