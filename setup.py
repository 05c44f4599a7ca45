from setuptools import setup, find_packages

setup(
    name="phyloscore",
    version="0.1.0",
    description="Phylogenetic distance and similarity scoring for species guessing rounds",
    package_dir={"": "phyloscore"},
    packages=find_packages(where="phyloscore"),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "treeswift>=1.1",
    ],
    extras_require={
        "dev": ["pytest>=7.4"],
    },
    entry_points={
        "console_scripts": [
            "phyloscore=phyloscore.cli:main",
        ],
    },
)
