#!/usr/bin/env python

from setuptools import setup

from filbert import __version__ as version

setup(
    name = 'filbert',
    version = version,
    description = 'BERT serializer and BERT-RPC client',
    author = 'Filbert developers',
    maintainer = 'Filbert developers',
    license = 'BSD',
    packages = ['filbert'],
    python_requires = '>=3.8',
    extras_require = {
        'test': ['pytest'],
    },
    classifiers = [
        'Intended Audience :: Developers',
        'License :: OSI Approved :: BSD License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Topic :: Software Development :: Libraries :: Python Modules',
    ],
)
