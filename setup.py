#!/usr/bin/env python
import os
import ast
import re
import importlib.util

from setuptools import setup, find_packages


def read(name):
    filename = os.path.join(os.path.dirname(__file__), name)
    with open(filename) as fp:
        return fp.read()


def requirements(name):
    install_requires = []
    dependency_links = []

    for line in read(name).split('\n'):
        if line.startswith('-e '):
            link = line[3:].strip()
            if link == '.':
                continue
            dependency_links.append(link)
            line = link.split('=')[1]
        line = line.strip()
        if line:
            install_requires.append(line)

    return install_requires, dependency_links


def version():
    # couchfeed imports its dependencies, load the version helper only
    path = os.path.join(os.path.dirname(__file__), 'couchfeed', 'utils',
                        'version.py')
    spec = importlib.util.spec_from_file_location('_version', path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    match = re.search(r'^VERSION = (\(.*\))$', read('couchfeed/__init__.py'),
                      re.MULTILINE)
    return module.get_version(ast.literal_eval(match.group(1)))


def description():
    return read('couchfeed/__init__.py').split('"""')[1]


meta = dict(
    name='couchfeed',
    version=version(),
    description=description(),
    author='couchfeed developers',
    license="BSD",
    long_description=read('README.rst'),
    include_package_data=True,
    python_requires='>=3.8',
    install_requires=requirements('requirements/hard.txt')[0],
    extras_require={'test': requirements('requirements/test.txt')[0]},
    packages=find_packages(include=['couchfeed', 'couchfeed.*']),
    entry_points={
        "console_scripts": [
            "couchfeed = couchfeed.cli:main"
        ]
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Web Environment',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: BSD License',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Framework :: AsyncIO',
        'Topic :: Database',
        'Topic :: Internet :: WWW/HTTP',
        'Topic :: Software Development :: Libraries :: Python Modules']
)


if __name__ == '__main__':
    setup(**meta)
