"""
Portfolio Catalog Editor API

Local backend that keeps the three locale project catalogs of a portfolio
site in sync and materializes uploaded images into its asset tree.
"""

__version__ = "0.1.0"
