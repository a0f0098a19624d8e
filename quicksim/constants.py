"""Package-wide constants.

Units: cross sections in pb, luminosities in pb^-1, Q² in GeV².
"""

APP_NAME = "quicksim"
APP_VERSION = "0.1.0"

# Weighting
DEFAULT_EXPERIMENTAL_LUMI = 1.0  # pb^-1, used when no luminosity table is given
EXPORT_Q2_EPSILON = 1e-4  # nudge above Q2_min when evaluating per-record weights
NO_WEIGHT = -1.0  # "weight not provided" marker in record tables

# Collision types
COLLISION_EP = "ep"
COLLISION_EN = "en"
COLLISION_TYPES = [COLLISION_EP, COLLISION_EN]
PROTON_BEAM_MARKER = "ep"

# Binning
BIN_KEY_SEPARATOR = "_"
INVALID_BIN = -1
COUNT_COLUMN = "scaled_events"
EXPLICIT_COLUMNS_PER_DIM = 4

# Migration response values are percentages
RESPONSE_PERCENT = 100.0

# CSV table headers
RECORD_HEADER = [
    "filename", "Q2_min", "Q2_max", "electron_energy", "hadron_energy",
    "n_events", "cross_section_pb",
]
WEIGHTED_RECORD_HEADER = RECORD_HEADER + ["weight"]
PRECALCULATED_HEADER = [
    "Q2min", "Q2max", "collisionType", "eEnergy", "hEnergy", "weight",
]

# Analysis
DEFAULT_OUTPUT_DIR = "artifacts"
WEIGHTS_SUFFIX = "_weights.csv"
