from setuptools import setup, find_packages
import pathlib, os

# Detect layout
use_src = pathlib.Path("src/chaintools").exists()
pkg_args = {"package_dir": {"": "src"}, "packages": find_packages(where="src")} if use_src \
           else {"packages": find_packages(where=".")}

setup(
    name="chain-tools",
    version="0.1.0",
    include_package_data=True,
    package_data={"chaintools.states": ["templates/*.j2"]},
    python_requires=">=3.9",
    install_requires=[
        "PyYAML>=6.0",
        "Jinja2>=3.0",
        "typer>=0.9",
        "pydantic>=2.0",
    ],
    extras_require={"test": ["pytest>=7.0"]},
    entry_points={"console_scripts": ["chain-tools=chaintools.cli:app"]},
    **pkg_args
)
