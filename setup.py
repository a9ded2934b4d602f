from setuptools import setup, find_packages


setup(
    name="asar",
    version="0.1",
    packages=find_packages(include=["asar", "asar.*"]),
    description="Reader and writer for the asar packed-archive format.",
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "asar=asar.cli:main",
        ]
    },
)
