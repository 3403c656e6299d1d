from pathlib import Path

from setuptools import setup

ROOT = Path(__file__).parent


def read_version() -> str:
    """Return ``__version__`` from the package without importing it."""
    for line in (ROOT / "streamdeck_runtime" / "_version.py").read_text().splitlines():
        if line.startswith("__version__"):
            return line.split("=", 1)[1].strip().strip("\"'")
    raise RuntimeError("unable to find __version__")


setup(
    name="streamdeck-runtime",
    version=read_version(),
    description="Asyncio client runtime for Stream Deck plugins",
    packages=["streamdeck_runtime"],
    python_requires=">=3.10",
    install_requires=[
        "websockets>=12",
        "pydantic>=2",
        "orjson>=3.9",
    ],
    extras_require={
        "test": ["pytest", "pytest-asyncio"],
    },
    entry_points={
        "console_scripts": [
            "streamdeck-runtime=streamdeck_runtime.cli:main",
        ],
    },
)
