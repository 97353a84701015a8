"""
Setup script for trend_engine package.

Context7 best practice: пакет с editable install (pip install -e .[test])
"""

from setuptools import setup, find_packages

setup(
    name="trend-engine",
    version="0.1.0",
    description="Decaying-anomaly trend scoring engine for hashtags, links and statuses",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "structlog>=23.0.0",
        "SQLAlchemy>=2.0.0",
        "redis>=5.0.0",
        "prometheus-client>=0.17.0",
        "APScheduler>=3.10,<4",
    ],
    extras_require={
        "postgres": ["psycopg2-binary>=2.9"],
        "test": ["pytest>=7.4.0"],
    },
    entry_points={
        "console_scripts": [
            "trend-engine=trend_engine.cli:main",
        ],
    },
)
