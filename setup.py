#!/usr/bin/env python3
"""
Ephemeral SSH Keys
Short-lived SSH key pairs with automatic time-bounded deletion
"""

from setuptools import setup, find_packages

# Read the README file for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Read requirements from requirements.txt
with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

# Read development requirements
with open("requirements-dev.txt", "r", encoding="utf-8") as fh:
    dev_requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="ephemeral-ssh-keys",
    version="0.1.0",
    author="Ephemeral SSH Keys Contributors",
    description="Generate, protect and automatically destroy short-lived SSH key pairs",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Security :: Cryptography",
        "Topic :: System :: Systems Administration",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "dev": dev_requirements,
        "test": ["pytest>=7.0.0", "pytest-cov>=4.0.0"],
    },
    keywords=[
        "ssh",
        "ssh-keygen",
        "ed25519",
        "ephemeral",
        "key-management",
    ],
    include_package_data=True,
    package_data={
        "": ["*.md", "*.txt", "*.json"],
    },
    entry_points={
        "console_scripts": [
            "ephemeral-ssh=ephemeral_ssh.cli:main",
        ],
    },
)
