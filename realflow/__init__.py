"""
realflow - reconciled job records from the RealFlow sensor feed.
"""

__version__ = "1.0.0"
