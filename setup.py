"""Install the JWT sessions package."""

from setuptools import setup, find_packages

setup(
    name='jwt-sessions',
    version='0.1.0',
    packages=find_packages(exclude=['*tests*']),
    entry_points={
        'console_scripts': [
            'generate-token=jwt_sessions.generate_token:generate_token'
        ]
    },
    install_requires=[
        "flask",
        "werkzeug",
        "itsdangerous",
        "click",
        "pyjwt>=2",
        "pytz",
        "redis>=4.1",
        "retry",
        "python-json-logger",
    ],
    extras_require={
        "test": ["pytest", "fakeredis[lua]"]
    },
    zip_safe=False
)
