#!/usr/bin/env python3
"""
Setup configuration for the Corpus Extract Pipeline.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the contents of README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

# Read requirements from requirements.txt
requirements = []
if (this_directory / "requirements.txt").exists():
    requirements = (this_directory / "requirements.txt").read_text().strip().split('\n')
    requirements = [req.strip() for req in requirements if req.strip() and not req.startswith('#')]

setup(
    name="corpus-extract-pipeline",
    version="1.0.0",
    author="Project Think",
    author_email="",
    description="Builds per-package partials and corpus-wide totals from package archives",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=['parsers*', 'pipeline*']),
    py_modules=[
        'base_classes',
        'corpus_extract_pipeline',
        'extract',
        'file_lock',
        'pipeline_configs',
        'pipeline_errors',
        'pipeline_monitoring',
        'run_tests',
    ],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
        "Topic :: Text Processing :: Indexing",
        "Topic :: System :: Archiving",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: POSIX",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=6.0",
            "pytest-cov",
            "pytest-asyncio",
            "black",
            "flake8",
            "mypy",
        ],
        "test": [
            "pytest>=6.0",
            "pytest-cov",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "corpus-extract=extract:main",
            "run-extract-tests=run_tests:main",
        ],
        "corpus_extract.parsers": [
            "javascript=parsers.javascript_parser:JavaScriptParser",
        ],
    },
    keywords=[
        "npm",
        "package-archives",
        "corpus",
        "code-search",
        "ast",
        "lz4",
    ],
)
