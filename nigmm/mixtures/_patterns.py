"""Gaussian mixtures restricted to every subset of observed channels.

A voxel whose channels are partially missing is modelled by the marginal
of the full-channel Gaussian-Wishart posterior over its observed channels.
There are 2**P such subsets ("patterns"), identified by a bitmask `code`
whose bit `j` is set when channel `j` is observed. All marginals are
precomputed once per call and stored in a single flat buffer, in code
order. Sufficient statistics use the same arena layout.
"""
import itertools
from collections import namedtuple
import torch
from nigmm.core import linalg
from nigmm.core.math import mvdigamma
from nigmm.core.constants import log2, log2pi, pi
from nigmm.core.utils import popcount, observed_channels, binomial


def space_needed(nb_channels, nb_classes):
    """Number of elements needed to store sufficient statistics.

    Parameters
    ----------
    nb_channels : int
        Number of channels (P).
    nb_classes : int
        Number of Gaussians (K).

    Returns
    -------
    n0 : int
        Number of zeroth moments, `sum_m K * C(P, m)`
    n1 : int
        Number of first moment elements, `sum_m K * C(P, m) * m`
    n2 : int
        Number of second moment elements, `sum_m K * C(P, m) * m * m`

    """
    n0 = n1 = n2 = 0
    for m in range(nb_channels + 1):
        nel = nb_classes * binomial(nb_channels, m)
        n0 += nel
        n1 += nel * m
        n2 += nel * m * m
    return n0, n1, n2


Pattern = namedtuple('Pattern', ['code', 'channels',
                                 'mu', 'b', 'W', 'nu', 'gam', 'conN', 'conT'])
Pattern.__doc__ = """Marginal parameters of all Gaussians for one pattern.

code : int
    Bitmask of observed channels
channels : list[int]
    Observed channels, in increasing order (length Po)
mu : (K, Po) tensor
    Marginal means
b : (K,) tensor
    Degrees of freedom of the Gaussian prior over the means
W : (K, Po, Po) tensor
    Marginal precision matrices, `E[Lambda] = nu' * W`
nu : (K,) tensor
    Marginal degrees of freedom, `nu - (P - Po)`
gam : (K,) tensor
    Log mixing proportions
conN : (K,) tensor
    Normalising constant of the VB Gaussian responsibilities
conT : (K,) tensor
    Normalising constant of the VB Student's t responsibilities
"""


class PatternTable:
    """Marginal VB-GMM parameters for every missing-data pattern.

    All tensors returned by `table[code]` are views into `table.buffer`.
    For each code (in increasing order), the buffer holds
    `mu (K*Po)`, `b (K)`, `W (K*Po*Po)`, `nu (K)`, `gam (K)`,
    `conN (K)`, `conT (K)`.
    """

    def __init__(self, nb_channels, nb_classes, dtype=None, device=None):
        """

        Parameters
        ----------
        nb_channels : int
        nb_classes : int
        dtype : torch.dtype, default=torch.double
        device : torch.device, optional

        """
        self.nb_channels = P = nb_channels
        self.nb_classes = K = nb_classes
        n0, n1, n2 = space_needed(P, K)
        dtype = dtype or torch.double
        self.buffer = torch.zeros(5 * n0 + n1 + n2, dtype=dtype, device=device)
        sizes = [K * (5 + Po + Po * Po)
                 for Po in map(popcount, range(1 << P))]
        self._offsets = list(itertools.accumulate([0] + sizes[:-1]))

    def __len__(self):
        return 1 << self.nb_channels

    def __getitem__(self, code):
        if not (0 <= code < len(self)):
            raise IndexError(code)
        K = self.nb_classes
        channels = observed_channels(code, self.nb_channels)
        Po = len(channels)
        shapes = [(K, Po), (K,), (K, Po, Po), (K,), (K,), (K,), (K,)]
        views = []
        offset = self._offsets[code]
        for shape in shapes:
            numel = K * (Po ** (len(shape) - 1))
            views.append(self.buffer[offset:offset+numel].view(shape))
            offset += numel
        return Pattern(code, channels, *views)

    def __iter__(self):
        for code in range(len(self)):
            yield self[code]


def make_patterns(mu, b, W, nu, gam):
    """Build the table of marginal parameters for all missing-data patterns.

    Parameters
    ----------
    mu : (K, P) tensor
        Expected means.
    b : (K,) tensor
        Mean degrees of freedom (precision scaling of the Gaussian prior).
    W : (K, P, P) tensor
        Wishart scale matrices.
    nu : (K,) tensor
        Wishart degrees of freedom.
    gam : (K,) tensor
        Mixing proportions.

    Returns
    -------
    table : PatternTable

    """
    K, P = mu.shape
    table = PatternTable(P, K, dtype=torch.double, device=mu.device)
    backend = dict(dtype=torch.double, device=mu.device)
    mu, b, W, nu, gam = [t.to(**backend) for t in (mu, b, W, nu, gam)]
    lgam = gam.log()

    # covariances of the full model
    S, _ = linalg.inv(W)

    # patterns with the same number of observed channels are processed
    # in one batch
    groups = {}
    for code in range(1 << P):
        groups.setdefault(popcount(code), []).append(code)

    for Po, codes in groups.items():
        index = torch.as_tensor([observed_channels(code, P) for code in codes],
                                dtype=torch.long, device=mu.device)
        index = index.reshape([len(codes), Po])

        # restrict covariances to observed channels and invert them back
        Ssub = S[:, index[:, :, None], index[:, None, :]]  # (K, C, Po, Po)
        Ssub = Ssub.transpose(0, 1)                         # (C, K, Po, Po)
        Wsub, ld = linalg.inv(Ssub)                         # ld = log|Wsub|
        musub = mu[:, index].transpose(0, 1)                # (C, K, Po)
        nusub = nu - (P - Po)

        # Constant term for VB mixture of Gaussians:
        # E[ln N(x | m, L^{-1})] w.r.t. Gaussian-Wishart
        eld = mvdigamma(nusub / 2, Po) + Po * log2 + ld
        conN = 0.5 * (eld - Po * (log2pi + b.reciprocal())) + lgam

        # Constant term for VB mixture of Student's t distributions
        # (Bishop's PRML, eqns 10.78-10.82 & B.68-B.72)
        tau = nusub + 1 - Po
        ld1 = ld + Po * (tau * b / (b + 1)).log()
        conT = ((0.5 * (nusub + 1)).lgamma() - (0.5 * tau).lgamma()
                + 0.5 * ld1 - 0.5 * Po * (tau * pi).log() + lgam)

        for c, code in enumerate(codes):
            pattern = table[code]
            pattern.mu.copy_(musub[c])
            pattern.b.copy_(b)
            pattern.W.copy_(Wsub[c])
            pattern.nu.copy_(nusub)
            pattern.gam.copy_(lgam)
            pattern.conN.copy_(conN[c])
            pattern.conT.copy_(conT[c])

    return table


class SuffStats:
    """Sufficient statistics for every missing-data pattern.

    `stats[code]` returns views `(s0, s1, s2)` of shapes
    `(K,)`, `(K, Po)` and `(K, Po, Po)` into the flat buffers
    `stats.s0`, `stats.s1` and `stats.s2`, whose sizes are given
    by `space_needed`.
    """

    def __init__(self, nb_channels, nb_classes, s0=None, s1=None, s2=None,
                 dtype=None, device=None):
        """

        Parameters
        ----------
        nb_channels : int
        nb_classes : int
        s0, s1, s2 : tensor, optional
            Pre-allocated contiguous buffers. Statistics are added to
            their current content. If not provided, zero-filled buffers
            are allocated.
        dtype : torch.dtype, default=torch.double
        device : torch.device, optional

        """
        self.nb_channels = P = nb_channels
        self.nb_classes = K = nb_classes
        sizes = space_needed(P, K)
        dtype = dtype or torch.double
        buffers = []
        for s, n in zip((s0, s1, s2), sizes):
            if s is None:
                s = torch.zeros(n, dtype=dtype, device=device)
            elif s.numel() != n:
                raise ValueError(f'Expected a buffer of {n} elements but '
                                 f'got {s.numel()}')
            elif not s.is_contiguous():
                raise ValueError('Sufficient statistics buffers must be '
                                 'contiguous')
            buffers.append(s)
        self.s0, self.s1, self.s2 = buffers

        Pos = [popcount(code) for code in range(1 << P)]
        self._offsets1 = list(itertools.accumulate([0] + [K * Po for Po in Pos[:-1]]))
        self._offsets2 = list(itertools.accumulate([0] + [K * Po * Po for Po in Pos[:-1]]))

    def __len__(self):
        return 1 << self.nb_channels

    def __getitem__(self, code):
        if not (0 <= code < len(self)):
            raise IndexError(code)
        K = self.nb_classes
        Po = popcount(code)
        s0 = self.s0.view(-1)[K*code:K*(code+1)]
        o1, o2 = self._offsets1[code], self._offsets2[code]
        s1 = self.s1.view(-1)[o1:o1+K*Po].view(K, Po)
        s2 = self.s2.view(-1)[o2:o2+K*Po*Po].view(K, Po, Po)
        return s0, s1, s2

    def symmetrize_(self):
        """Copy the lower triangle of each second moment into its upper
        triangle (in-place)."""
        for code in range(1, len(self)):
            _, _, s2 = self[code]
            Po = s2.shape[-1]
            i, j = torch.triu_indices(Po, Po, 1, device=s2.device)
            s2[:, i, j] = s2[:, j, i]
        return self
