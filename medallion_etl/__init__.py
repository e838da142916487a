"""
Medallion ETL pipeline for industrial equipment anomalies.
"""

__version__ = "1.0.0"
