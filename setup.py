#!/usr/bin/env python
"""Setup configuration for tasksync."""

from setuptools import find_packages, setup

setup(
    name="tasksync",
    version="0.1.0",
    description="Offline-first sync connector and snapshot backup/restore engine",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.104.1",
        "uvicorn[standard]>=0.24.0",
        "boto3>=1.29.7",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.0.0",
        "sqlalchemy>=2.0.23",
        "httpx>=0.25.0",
        "python-jose[cryptography]>=3.3.0",
        "tenacity>=8.2.0",
        "structlog>=23.2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tasksync=tasksync.main:main",
        ],
    },
)
