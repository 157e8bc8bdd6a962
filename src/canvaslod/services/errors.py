"""Errors raised by the LOD engine.

Every error is a local, synchronous validation failure. They all derive from
``LODError`` (itself a ``ValueError``) so routes can translate them into a
single 400 response.
"""


class LODError(ValueError):
    """Base class for LOD engine errors"""
    pass


class InvalidViewportState(LODError):
    """Viewport state cannot be used (non-positive scale, negative size)"""
    pass


class InvalidZoomFactor(LODError):
    """Zoom factor is not a positive number"""
    pass


class UnknownSemanticLevel(LODError):
    """A level (or level index) is not known to the table being consulted"""
    pass


class InvalidThresholdTable(LODError):
    """A threshold table or per-level table is malformed or not exhaustive"""
    pass
