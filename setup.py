from setuptools import setup


setup(
    name="datamend",
    version="0.1.0",
    description="Local tabular data quality diagnosis, cleaning and record linkage",
    packages=["datamend", "datamend.cleaning", "datamend.linkage"],
    python_requires=">=3.10",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "jellyfish",
        "rapidfuzz",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "datamend=datamend.cli:main",
        ]
    },
)
