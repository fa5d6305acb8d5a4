from setuptools import setup, find_packages


setup(
    name="gmapack",
    version="0.1",
    packages=find_packages(include=["gmapack", "gmapack.*"]),
    description="Reader, writer and block-diff updater for addon (.gma) archives.",
    author="gmapack contributors",
    python_requires=">=3.8",
    install_requires=[],
    entry_points={
        "console_scripts": [
            "gmapack=gmapack.cli:main",
        ]
    },
)
