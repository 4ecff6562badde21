"""Exception types raised by the copyslasher detector."""
from __future__ import annotations


class CopySlasherError(Exception):
    """Base class for every error raised by the detector."""


class EmptyTextError(CopySlasherError, ValueError):
    """Normalisation left nothing to shingle.

    Recoverable: batch operations skip the offending record and count it.
    """


class InvalidThresholdError(CopySlasherError, ValueError):
    """A similarity threshold outside ``[0, 1]``."""


class InvalidConfigurationError(CopySlasherError, ValueError):
    """Inconsistent engine parameters (e.g. ``bands * rows_per_band != num_hashes``)."""
