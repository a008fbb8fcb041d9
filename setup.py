from setuptools import setup, find_packages

setup(
    name="nocheat",
    version="0.1.0",
    description="Cheat detection for multiplayer games using random forests over per-round player statistics",
    packages=find_packages(include=["nocheat", "nocheat.*"]),
    install_requires=[
        "numpy>=1.22.4",
        "pandas>=1.5.3",
        "scipy>=1.10.0",
        "scikit-learn>=1.3.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "nocheat=nocheat.main:main",
        ],
    },
)
