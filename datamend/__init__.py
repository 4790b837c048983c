"""datamend: tabular data quality diagnosis, cleaning and record linkage."""

__version__ = "0.1.0"
