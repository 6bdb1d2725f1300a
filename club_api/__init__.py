"""
Taiko club API: song catalog, photo gallery and monthly challenges.
"""
__version__ = "1.0.0"
