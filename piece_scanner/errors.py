"""
Exceptions raised by the scanning pipeline.

Structural frame problems (empty or malformed frames) are not errors: the
segmenter returns an empty result for them. Only a broken execution
environment, such as missing pixel data for extraction, is raised.
"""


class ScanError(Exception):
    """Base class for scanning failures."""


class PixelAccessError(ScanError):
    """The processed RGBA frame needed for extraction or classification is unavailable."""
