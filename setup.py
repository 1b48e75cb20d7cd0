# -*- Mode: Python -*-
"""paychan

This tool uses the official PyPa packaging and click recommendations:
https://github.com/pypa/sampleproject
https://packaging.python.org/en/latest/distributing.html
http://click.pocoo.org/4/setuptools/
"""
from setuptools import setup


install_requires = [
    'base58',
    'click',
    'PyNaCl',
    'tabulate',
]

version = __import__('paychan').PAYCHAN_VERSION

setup(
    name='paychan',
    version=version,
    description='Two-party payment channels with signed off-chain balance updates.',
    license='FreeBSD',

    # See https://pypi.python.org/pypi?%3Aaction=list_classifiers
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Topic :: Internet',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
    ],
    keywords='payment channel ed25519 ledger',

    packages=['paychan',
              'paychan.channels',
    ],

    # List run-time dependencies here.  These will be installed by pip when
    # your project is installed.
    install_requires=install_requires,

    # List additional groups of dependencies here (e.g. development
    # dependencies). You can install these using the following syntax,
    # for example:
    # $ pip install -e .[test]
    extras_require={
        'test': ['pytest', 'flake8', 'coverage'],
    },

    # To provide executable scripts, use entry points in preference to the
    # "scripts" keyword. Entry points provide cross-platform support and allow
    # pip to create the appropriate form of executable for the target platform.
    # http://click.pocoo.org/4/setuptools/
    entry_points={
        'console_scripts': [
            'paychan=paychan.cli:main',
        ],
    },
)
