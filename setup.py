from setuptools import find_packages, setup

setup(
    name='loa-bridge',
    version='0.3.0',
    description='Host-side request/response bridge for Lua-on-Arduino boards over a serial link',
    author='isantolin',
    author_email='',
    packages=find_packages(include=['loabridge', 'loabridge.*']),
    python_requires='>=3.11',
    install_requires=[
        'msgspec',
        'construct',
        'cobs',
        'transitions',
        'tenacity',
        'pyserial-asyncio-fast',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    entry_points={
        'console_scripts': [
            'loabridge-frame-debug=loabridge.tools.frame_debug:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
)
