"""quicksim: cross-section weighting, N-D binning and migration prediction
for sliced DIS Monte Carlo samples."""

from quicksim.constants import APP_VERSION as __version__

__all__ = ["__version__"]
