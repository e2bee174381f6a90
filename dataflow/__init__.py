"""
DataFlow: JSON-document entity service with an Airflow proxy and Git deployment.
"""

from .core.config import VERSION

__version__ = VERSION
