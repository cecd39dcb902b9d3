"""AniFlow package setup."""

from setuptools import setup, find_packages

setup(
    name="aniflow",
    version="0.1.0",
    description="Turn a one-line idea into a consistent, animated storyboard",
    author="Ricky",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "python-dotenv>=1.0.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "anthropic>=0.18.0",
        "httpx>=0.25.0",
        "click>=8.1.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.0.0",
            "pytest-asyncio>=0.23.0",
            "black>=24.0.0",
            "ruff>=0.2.0",
            "mypy>=1.8.0",
        ],
        "audio": [
            "pydub>=0.25.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "aniflow=cli.main:cli",
        ],
    },
)
