"""Setup script for tablerunner"""

from setuptools import setup, find_packages
from pathlib import Path

# Read version
version_file = Path(__file__).parent / "tablerunner" / "__version__.py"
version = {}
exec(version_file.read_text(), version)

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="tablerunner",
    version=version["__version__"],
    description="Scripted blackjack session runner with a strategy-table decision engine",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Tablerunner Team",
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests", "tests.*", "docs", "docs.*"]),
    install_requires=[
        "pyyaml>=6.0",
        "python-dotenv>=1.0.0",
        "httpx>=0.27.0",
        "pydantic>=2.0.0",
        "tabulate>=0.9.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tablerunner=tablerunner.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
