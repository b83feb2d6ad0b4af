"""
Installation setup for decklog
"""
import configparser
import pathlib

import setuptools

# Establish project directory
project_root: pathlib.Path = pathlib.Path(__file__).resolve().parent

# Read config details to determine version-ing
config_file = project_root.joinpath("decklog/resources/decklog.properties")
config = configparser.ConfigParser()
if config_file.is_file():
    config.read(str(config_file))

setuptools.setup(
    name="decklog",
    version=config.get("DECKLOG", "version", fallback="0.0.0+fallback"),
    description="Deck collection and game log client for Commander players",
    long_description=project_root.joinpath("README.md").open(encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    license="MIT",
    classifiers=[
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python",
        "Topic :: Games/Entertainment",
    ],
    keywords=[
        "Card Games",
        "Commander",
        "Deck Tracker",
        "MTG",
        "Magic: The Gathering",
    ],
    python_requires=">=3.9",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    package_data={"decklog": ["resources/*.properties"]},
    install_requires=project_root.joinpath("requirements.txt")
    .open(encoding="utf-8")
    .readlines()
    if project_root.joinpath("requirements.txt").is_file()
    else [],  # Use the requirements file, if able
    extras_require={
        "test": ["pytest", "pytest-asyncio"],
    },
    entry_points={"console_scripts": ["decklog=decklog.__main__:main"]},
)
