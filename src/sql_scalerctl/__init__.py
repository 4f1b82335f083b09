"""
sql-scalerctl: Scaling decision engine for Cloud SQL instances
"""

__version__ = "0.1.0"
