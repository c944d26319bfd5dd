"""Read observations and tissue priors from volumes."""
import torch
from nigmm.core.utils import bitmask


def get_voxels(mf, vf):
    """Extract observations and their missing-data pattern.

    Parameters
    ----------
    mf : (*spatial, P) tensor
        Expected intensities, E[f]. Non-finite values are missing.
    vf : (*spatial, P) tensor
        Variance of the intensities, diag(Var[f]).

    Returns
    -------
    code : (N,) tensor[long]
        Bitmask of finite channels.
    x : (N, P) tensor[double]
        Expected intensities.
    v : (N, P) tensor[double]
        Variances.

    """
    P = mf.shape[-1]
    x = mf.reshape([-1, P]).double()
    v = vf.reshape([-1, P]).double()
    code = bitmask(torch.isfinite(x))
    return code, x, v


def get_priors(lp, lkp):
    """Gather the log tissue prior of each Gaussian.

    Parameters
    ----------
    lp : (*spatial, K1) tensor
        Log tissue priors.
    lkp : (K,) tensor[long]
        Tissue class of each Gaussian.

    Returns
    -------
    p : (N, K) tensor[double]
        Log prior of each Gaussian.
    valid : (N,) tensor[bool]
        True where all priors are finite.

    """
    K1 = lp.shape[-1]
    p = lp.reshape([-1, K1])[:, lkp].double()
    valid = torch.isfinite(p).all(-1)
    return p, valid


def sampled_shape(nf, nm, skip):
    """Extent of the data lattice matched by a (finer) prior lattice.

    Data voxel `(i0, i1, i2)` is matched with prior voxel
    `(i0*skip[0], i1*skip[1], i2*skip[2])`.

    Parameters
    ----------
    nf : sequence[int]
        Spatial shape of the data.
    nm : sequence[int]
        Spatial shape of the priors.
    skip : sequence[int]
        Sampling stride of the priors.

    Returns
    -------
    list[int]

    """
    return [min(m // s, f) for f, m, s in zip(nf, nm, skip)]


def sample_priors(lp, shape, skip):
    """Subsample the prior lattice so that it matches the data lattice."""
    s0, s1, s2 = skip
    n0, n1, n2 = shape
    return lp[::s0, ::s1, ::s2][:n0, :n1, :n2]


def chunks(length, size=None):
    """Split `range(length)` into consecutive slices of `size` elements
    (default: one slice at a time)."""
    size = size or 1
    if size < 0:
        raise ValueError(f'Chunk size must be positive: {size}')
    for start in range(0, length, size):
        yield slice(start, min(start + size, length))


def groups(code, mask):
    """Indices of the (masked) voxels, grouped by pattern code.

    Voxels are sorted once by code, so that each group is a contiguous
    run of the sorted indices. Within a group, indices are increasing.

    Parameters
    ----------
    code : (N,) tensor[long]
        Pattern code of each voxel.
    mask : (N,) tensor[bool]
        Voxels to consider.

    Yields
    ------
    code : int
        Pattern code, in increasing order.
    index : (M,) tensor[long]
        Indices of the voxels with this code.

    """
    index = mask.nonzero(as_tuple=True)[0]
    if not len(index):
        return
    code, order = torch.sort(code[index], stable=True)
    index = index[order]
    values, counts = torch.unique_consecutive(code, return_counts=True)
    for value, group in zip(values.tolist(), index.split(counts.tolist())):
        yield value, group


def unravel(index, shape):
    """Convert linear indices into a tuple of (row-major) sub-indices."""
    sub = []
    for n in reversed(shape):
        sub.append(index % n)
        index = index // n
    return tuple(reversed(sub))
