"""Exception hierarchy for the extraction pipeline.

Domain errors propagate out of the pipeline unchanged so callers can tell a
bad photo from a broken server. Anything else raised while processing an image
is wrapped in ``ExtractionFailedError`` at the invocation boundary.
"""


class PaperMapError(Exception):
    """Base exception for all papermap errors."""

    pass


class InvalidParameterError(PaperMapError, ValueError):
    """A local contract was violated (out-of-range HSB value, malformed points)."""

    pass


class NoRectanglesFoundError(PaperMapError):
    """The rectangle detector reported no candidate quadrilaterals."""

    pass


class NoPaperFoundError(PaperMapError):
    """None of the candidate quadrilaterals can be the sheet of paper."""

    pass


class SampleOutOfBoundsError(PaperMapError, IndexError):
    """A colour sample was requested outside the image bounds."""

    pass


class UnsupportedImageError(PaperMapError):
    """The input could not be decoded as an image."""

    pass


class ExtractionFailedError(PaperMapError):
    """Unexpected internal failure while processing an image."""

    pass
