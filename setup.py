"""
ddlapi - REST API inference from SQL DDL
Install: pip install -e .
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="ddlapi",
    version="1.0.0",
    author="Diegoproggramer",
    author_email="",
    description="Infer REST API descriptors from SQL DDL schemas",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/Diegoproggramer/ddlapi",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Database",
        "Topic :: Software Development :: Code Generators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ddlapi=ddlapi.cli:cli_main",
        ],
    },
    keywords="sql, ddl, schema, rest, api, openapi, parser, code-generator",
    project_urls={
        "Bug Reports": "https://github.com/Diegoproggramer/ddlapi/issues",
        "Source": "https://github.com/Diegoproggramer/ddlapi",
    },
)
