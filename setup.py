#!/usr/bin/env python3
"""
Setup script for resume2pdf
"""

from setuptools import setup, find_packages
import os

# Read requirements from requirements.txt
def read_requirements(filename='requirements.txt'):
    with open(filename, 'r') as f:
        return [line.strip() for line in f if line.strip() and not line.startswith('#')]

# Read long description from README
def read_long_description():
    if os.path.exists('README.md'):
        with open('README.md', 'r', encoding='utf-8') as f:
            return f.read()
    return "Exports static résumé and portfolio pages to PDF with headless Chromium"

setup(
    name="resume2pdf",
    version="1.0.0",
    description="Exports static résumé and portfolio pages to PDF with headless Chromium",
    long_description=read_long_description(),
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=read_requirements(),
    extras_require={
        "test": read_requirements('requirements-test.txt'),
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "resume2pdf=resume2pdf.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Printing",
        "Topic :: Text Processing :: Markup :: HTML",
        "Topic :: Utilities",
    ],
    keywords="pdf-export resume portfolio headless-browser playwright mermaid",
    include_package_data=True,
)
