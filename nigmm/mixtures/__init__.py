"""Variational Bayesian Gaussian mixtures with missing channels.

Entry points
------------
suffstats_missing
    Sufficient statistics (for each missing-data pattern) used to
    update the mixture parameters.
responsibilities
    Tissue responsibility maps.
inu_grads
    Gradient and Hessian used to update the bias field of one channel.

Building blocks
---------------
space_needed, make_patterns, PatternTable, SuffStats,
normal_resp, student_resp, make_index
"""

from ._api import suffstats_missing, responsibilities, inu_grads, \
    PreconditionError
from ._patterns import space_needed, make_patterns, PatternTable, \
    SuffStats, Pattern
from ._resp import del2, normal_resp, student_resp
from ._inu import make_index
from ._voxels import get_voxels, get_priors
