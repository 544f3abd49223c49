import os
import re
import setuptools
from typing import List


def get_content(file: str) -> str:
    with open(file, "r", encoding="utf-8") as f:
        return f.read()


def get_version(package: str) -> str:
    path = os.path.join(package, "__init__.py")
    return re.search("__version__ = ['\"]([^'\"]+)['\"]", get_content(path)).group(1)


def get_packages(package: str) -> List[str]:
    return [
        directory
        for directory, subdirectories, filenames in os.walk(package)
        if os.path.exists(os.path.join(directory, "__init__.py"))
    ]


setuptools.setup(
    name="helpdesk_core",
    version=get_version("helpdesk_core"),
    packages=get_packages("helpdesk_core"),
    description="Helpdesk core REST API for tickets and their authors",
    long_description=get_content("README.md"),
    long_description_content_type="text/markdown",
    install_requires=[
        "argon2-cffi>=21.3.0",
        "fastapi>=0.100.0",
        "pydantic>=2.0,<3.0",
        "pydantic-settings>=2.0,<3.0",
        "python-jose>=3.3.0,<4.0",
        "SQLAlchemy>=2.0,<3.0",
        "uvicorn>=0.20.0,<1.0"
    ],
    extras_require={
        "full": [
            "ujson>=5.2,<6.0"
        ],
        "test": [
            "httpx>=0.24.0"
        ]
    },
    python_requires=">=3.9",
    classifiers=[
        "Operating System :: OS Independent",
        "Topic :: Internet :: WWW/HTTP",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Development Status :: 3 - Alpha"
    ]
)
