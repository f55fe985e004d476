"""Setup script for mimeutil."""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="mimeutil",
    version="0.1.0",
    description="MIME type detection from magic rules, file names and content, with HTTP Accept negotiation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Your Name",
    author_email="your.email@example.com",
    url="https://github.com/yourusername/mimeutil",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={
        "mimeutil.config": ["defaults.toml"],
        "mimeutil.detectors": ["data/*.toml"],
        "mimeutil.magic": ["data/magic.mime"],
    },
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.104.0",
        "uvicorn[standard]>=0.24.0",
        "pydantic>=2.5.0",
        "platformdirs>=4.0.0",
        "toml>=0.10.2",
        "filetype>=1.2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.25.0",
            "black>=23.11.0",
            "ruff>=0.1.6",
            "mypy>=1.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mimeutil=mimeutil.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP",
    ],
    keywords="mime content-type magic detection negotiation",
    project_urls={
        "Bug Reports": "https://github.com/yourusername/mimeutil/issues",
        "Source": "https://github.com/yourusername/mimeutil",
    },
)
