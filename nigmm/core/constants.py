"""Useful constants."""

import math

pi = math.pi      # pi
inf = math.inf    # infinity
ninf = -math.inf  # negative infinity
nan = math.nan    # not-a-number
log2 = math.log(2.)
log2pi = math.log(2. * math.pi)

# Hard bounds on the problem size. Channel codes are stored in floating
# point buffers by some callers and the largest exactly representable
# integer in double precision is 2**52. Log-priors are gathered in a
# scratch vector of length `max_classes`.
max_channels = 50
max_classes = 128
