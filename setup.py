from setuptools import setup, find_packages


setup(
    name="serumpreset",
    version="0.1",
    packages=find_packages(exclude=["scripts"]),
    description="Lossless conversion between Xfer Serum .SerumPreset files and JSON.",
    author="vercingetorx",
    install_requires=[
        "zstandard>=0.22.0",
        "cbor2>=5.6.0",
    ],
    entry_points={
        "console_scripts": [
            "serumpreset=serumpreset.cli:main",
        ]
    },
)
