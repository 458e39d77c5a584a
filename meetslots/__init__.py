"""
meetslots - resolve bookable meeting slots across time zones.
"""

__version__ = "0.1.0"
