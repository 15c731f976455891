from setuptools import find_packages, setup

setup(
    name='sinkbridge',
    version='1.0.0',
    description='Serial telemetry -> gRPC / unix socket bridge daemon with hash acknowledgement',
    author='isantolin',
    author_email='',
    packages=find_packages(include=['sinkbridge', 'sinkbridge.*']),
    python_requires='>=3.11',
    install_requires=[
        'pyserial',
        'pyserial-asyncio-fast',
        'uvloop',
        'msgspec',
        'marshmallow',
        'tenacity',
        'transitions',
        'grpcio',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    entry_points={
        'console_scripts': [
            'sinkbridge=sinkbridge.daemon:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
)
