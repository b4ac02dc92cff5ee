"""Service layer modules (network and external I/O).

Currently includes music bed and logo image loading helpers.
"""

__all__ = [
    "assets",
    "errors",
]
