"""
Central exception hierarchy for the route analytics engine.

Callers can catch RouteAnalysisError (broad) or a specific subclass (narrow).
Degraded input (missing timestamps, elevation or sensor streams) is never an
error; only contract violations and adapter failures are raised.
"""


class RouteAnalysisError(RuntimeError):
    """Base class for all route analysis errors."""


# ---- Input contract errors ---------------------

class InvalidTrackPointError(RouteAnalysisError, ValueError):
    """A point handed to a pipeline is malformed (bad coordinates or wrong type)."""


class GPXParseError(RouteAnalysisError, ValueError):
    """GPX content could not be parsed or contained no track data."""


# ---- Terrain service errors --------------------

class TerrainServiceError(RouteAnalysisError):
    """The land-use query service failed; never escapes the terrain classifier."""


class TerrainServiceTimeout(TerrainServiceError):
    """The land-use query service did not answer within the request timeout (retryable)."""
