"""Error kinds raised by the placement pipeline.

Per-object errors (``PlacementError`` subclasses) drop a single star from the
batch; the pipeline records them as diagnostics and keeps going. Only
``EmptyBatchError`` and ``IngestError`` stop a run.
"""


class StarSliceError(Exception):
    """Base class for all placement errors."""


class PlacementError(StarSliceError):
    """A single object could not be resolved or placed."""


class NotResolvable(PlacementError):
    """No usable distance or position data for an object."""


class ProjectionSingularity(PlacementError):
    """The tangent plane is undefined for this RA/Dec (90° or more from center)."""


class OutOfBounds(PlacementError):
    """The projected point lies beyond the frame's margin."""

    def __init__(self, message: str, x: float, y: float):
        super().__init__(message)
        self.x = x
        self.y = y


class RemoteLookupError(PlacementError):
    """The remote catalog could not be reached (HTTP error, refused connection).

    Transient: never cached as a miss, so a later run asks again.
    """


class RemoteLookupTimeout(RemoteLookupError):
    """The remote catalog did not answer in time. Treated as not found."""


class EmptyBatchError(StarSliceError):
    """Zero objects survived resolution and placement."""

    def __init__(self, message: str, diagnostics=()):
        super().__init__(message)
        self.diagnostics = tuple(diagnostics)


class IngestError(StarSliceError):
    """The input file cannot be read or lacks the frame metadata."""
