"""Error taxonomy.

Every error is fatal for the current batch.  Each class also derives from
the builtin exception a caller would naturally catch for that situation, so
``except ValueError`` keeps working around configuration problems.
"""


class QuickSimError(Exception):
    """Base class for all package errors."""


class ConfigError(QuickSimError, ValueError):
    """Missing or malformed key, or inconsistent array lengths."""


class MixedEnergyError(ConfigError):
    """Records combined into one weight table have different beam energies."""


class DimensionMismatchError(QuickSimError, ValueError):
    """Value vector or multi-index length differs from the dimension count."""


class RangeResolutionError(QuickSimError, ValueError):
    """Q² intervals are neither fully nested nor a clean chain."""


class ZeroLuminosityError(QuickSimError, ArithmeticError):
    """No simulated luminosity covers a Q² interval."""


class LookupNotFoundError(QuickSimError, LookupError):
    """No table row matches the requested energy configuration or range."""


class OutOfRangeError(QuickSimError, IndexError):
    """Flat or per-dimension migration bin index outside its range."""
