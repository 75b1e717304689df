class CIQError(Exception):
    """Base class for every failure raised by the ciq package."""


class InputFormatError(CIQError, ValueError):
    """Input image or palette is unreadable, malformed or truncated."""


class InvalidParameter(CIQError, ValueError):
    """A clustering parameter is out of range (e.g. K < 1 or K > number of points)."""


class AllocationError(CIQError, MemoryError):
    """Scratch buffers or point storage could not be allocated."""


class OutputWriteError(CIQError, OSError):
    """An output file could not be written."""
