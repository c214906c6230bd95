"""
Smart Canteen: ordering, order tracking and kitchen dashboard service.
"""

__version__ = "1.0.0"
