class PanoramaError(Exception):
    """Base class for failures that abort a downsampling run."""
    exit_status = 1


class ArgumentError(PanoramaError, ValueError):
    """Missing or malformed command-line arguments."""
    exit_status = 2


class DecodeError(PanoramaError, ValueError):
    """Input file is unreadable, not an 8-bit P6 image, or truncated."""
    exit_status = 3


class DimensionError(PanoramaError, ValueError):
    """Requested output is larger than the input (or empty)."""
    exit_status = 4


class EncodeError(PanoramaError, OSError):
    """Output file could not be opened or written."""
    exit_status = 5
