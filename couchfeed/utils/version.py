import os
import datetime
import subprocess


STAGES = {'alpha': 'a', 'beta': 'b', 'rc': 'rc'}


def get_version(version, filename=None):
    '''PEP 440 version string of a ``(major, minor, micro, stage, serial)``
    tuple.

    An ``alpha`` with serial 0 is a development version tagged with the
    timestamp of the last git commit, when available.
    '''
    assert len(version) == 5
    assert version[3] in ('alpha', 'beta', 'rc', 'final')
    main = '.'.join(str(v) for v in version[:3])
    if version[3] == 'final':
        return main
    if version[3] == 'alpha' and version[4] == 0:
        changeset = get_git_changeset(filename)
        if changeset:
            return '%s.dev%s' % (main, changeset)
    return '%s%s%s' % (main, STAGES[version[3]], version[4])


def sh(command, cwd=None):
    return subprocess.run(command, cwd=cwd, shell=True,
                          stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                          universal_newlines=True).stdout


def get_git_changeset(filename=None):
    """UTC timestamp of the latest git commit as ``YYYYMMDDHHMMSS``, or
    ``None`` outside a git checkout."""
    dirname = os.path.dirname(filename or __file__)
    output = sh('git show --pretty=format:%ct --quiet HEAD', cwd=dirname)
    try:
        timestamp = int(output.partition('\n')[0])
    except ValueError:
        return None
    moment = datetime.datetime.fromtimestamp(timestamp,
                                             datetime.timezone.utc)
    return moment.strftime('%Y%m%d%H%M%S')
