"""
App Publisher

Records and updates deployable app metadata in per-environment datastores.
"""

__version__ = "0.1.0"
