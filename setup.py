"""Setup script for SnapList"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="snaplist",
    version="1.0.0",
    author="SnapList",
    description="Listing lifecycle and settlement engine for multi-marketplace sellers",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["snaplist", "snaplist.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Office/Business :: Financial",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "requests>=2.31.0",
        "python-dotenv>=1.0.0",
        "flask>=2.3.0",
        "psycopg2-binary>=2.9.9",
        "structlog>=23.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "snaplist-scheduler=snaplist.sync.scheduler:main",
        ],
    },
)
