"""Low-level utilities used everywhere."""

from . import cli          # command-line utilities
from . import constants    # constant values
from . import linalg       # linear algebra
from . import math         # generic math
from . import py           # python utilities
from . import struct       # option structures
from . import utils        # pytorch utilities
