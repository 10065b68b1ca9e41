"""
Charging session lifecycle and billing service for an EV charging venue.
"""

__version__ = "1.0.0"
