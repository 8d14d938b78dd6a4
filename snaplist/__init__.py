"""
SnapList
========
Listing lifecycle and settlement engine for sellers who list one item on
several marketplaces at once.
"""

__version__ = "1.0.0"
