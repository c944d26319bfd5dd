"""Missing-data variational Bayesian Gaussian mixtures for multi-channel
volumes (responsibilities, sufficient statistics and bias field
gradients)."""

from . import core
from . import mixtures
from . import cli

from .mixtures import suffstats_missing, responsibilities, inu_grads, \
    space_needed

from ._version import __version__
