from setuptools import setup, find_packages

setup(
    name             = 'imeiwatch',
    version          = '1.0.0',
    description      = 'imeiwatch — IMEI connectivity status checker and report exporter',
    author           = 'imeiwatch contributors',
    packages         = find_packages(exclude=['tests*']),
    install_requires = open('requirements.txt').read().splitlines(),
    extras_require   = {
        'test': ['pytest', 'httpx'],
    },
    entry_points     = {
        'console_scripts': [
            'imeiwatch     = imeiwatch.cli:main',
            'imeiwatch-api = imeiwatch.api:main',
        ],
    },
    python_requires  = '>=3.10',
    classifiers      = [
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
)
