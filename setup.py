"""Setup script for storage_client package."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="storage_client",
    version="0.1.0",
    author="Your Name",
    author_email="your.email@example.com",
    description="Async client for Supabase-compatible object storage with resumable uploads",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yourusername/storage_client",
    packages=find_packages(include=["storage_client", "storage_client.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Internet :: WWW/HTTP",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "storage-client=storage_client.main:main",
        ],
    },
)
