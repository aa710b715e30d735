"""Setup script for fluxmux."""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="fluxmux",
    version="0.1.0",
    description="Streaming data bridge between files, Kafka, Postgres and standard streams",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.104.0",
        "uvicorn[standard]>=0.24.0",
        "pydantic>=2.5.0",
        "aiofiles>=23.2.0",
        "platformdirs>=4.0.0",
        "toml>=0.10.2",
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.25.0",
            "pyarrow>=14.0.0",
            "fastavro>=1.9.0",
            "msgpack>=1.0.7",
            "cbor2>=5.5.0,<6",
            "black>=23.11.0",
            "ruff>=0.1.6",
            "mypy>=1.7.0",
        ],
        "kafka": [
            "aiokafka>=0.10.0",
        ],
        "postgres": [
            "asyncpg>=0.29.0",
        ],
        "formats": [
            "pyarrow>=14.0.0",
            "fastavro>=1.9.0",
            "msgpack>=1.0.7",
            "cbor2>=5.5.0,<6",
        ],
    },
    entry_points={
        "console_scripts": [
            "fluxmux=fluxmux.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="etl streaming kafka postgres ndjson bridge",
)
