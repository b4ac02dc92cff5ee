"""
Master render pipeline for multi-scene ad videos.
"""

__version__ = "0.1.0"
