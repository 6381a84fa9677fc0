# setup.py
from setuptools import setup, find_packages

setup(
    name="indie-scout",
    version="0.1.0",
    description="Асинхронный краулер-скаут для каталога независимых сайтов IndieScout",
    packages=find_packages(exclude=("tests", "tests.*")),
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "click>=8.1",
        "pydantic>=2.5",
        "python-dateutil>=2.8",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "indie-scout=indie_scout.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
