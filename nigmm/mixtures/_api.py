"""Entry points of the missing-data VB-GMM engine.

Each call rebuilds the table of marginal parameters from the current
VB-GMM parameters, runs one pass over the volume and returns the
summed log-likelihood. If the problem is too large (P >= 50 or
K >= 128), if inputs or output buffers are inconsistent, or if memory
cannot be allocated, the log-likelihood is NaN and caller-provided
buffers are left untouched. Passes write into private buffers, which
are merged into the caller's buffers only once the whole pass succeeded.
"""
from timeit import default_timer as timer
from warnings import warn
import torch
from nigmm.core import py
from nigmm.core.constants import nan, max_channels, max_classes
from ._patterns import make_patterns, space_needed, SuffStats
from ._suffstat import suffstats_pass
from ._map import responsibilities_pass
from ._inu import inu_pass


class PreconditionError(ValueError):
    """Raised when the inputs of a call cannot be processed"""
    pass


def _prepare(mf, vf, mu, b, W, nu, gam, lp, skip, lkp):
    """Convert and check inputs common to all passes."""
    mf = torch.as_tensor(mf)
    vf = torch.as_tensor(vf)
    if mf.dim() == 3:
        mf, vf = mf[..., None], vf[..., None]
    if mf.dim() != 4 or mf.shape != vf.shape:
        raise PreconditionError(f'Expected volumes of shape (nx, ny, nz, P) '
                                f'but got {tuple(mf.shape)} and '
                                f'{tuple(vf.shape)}')
    P = mf.shape[-1]

    backend = dict(dtype=torch.double, device=mf.device)
    mu = torch.as_tensor(mu, **backend)
    if mu.dim() != 2 or mu.shape[-1] != P:
        raise PreconditionError(f'Expected means of shape (K, {P}) but got '
                                f'{tuple(mu.shape)}')
    K = len(mu)
    if P >= max_channels:
        raise PreconditionError(f'Too many channels: {P} >= {max_channels}')
    if K >= max_classes:
        raise PreconditionError(f'Too many Gaussians: {K} >= {max_classes}')
    b, nu, gam = [torch.as_tensor(t, **backend).reshape([-1])
                  for t in (b, nu, gam)]
    W = torch.as_tensor(W, **backend)
    if any(len(t) != K for t in (b, nu, gam)) or W.shape != (K, P, P):
        raise PreconditionError('Inconsistent mixture parameters')

    lp = torch.as_tensor(lp)
    if lp.dim() == 3:
        lp = lp[..., None]
    if lp.dim() != 4:
        raise PreconditionError(f'Expected log-priors of shape '
                                f'(mx, my, mz, K1) but got {tuple(lp.shape)}')
    if lkp is None:
        lkp = range(K)
    lkp = torch.as_tensor(lkp, dtype=torch.long, device=mf.device).reshape([-1])
    if len(lkp) != K:
        raise PreconditionError(f'Lookup table has {len(lkp)} elements '
                                f'but there are {K} Gaussians')
    if K and (lkp.min() < 0 or lkp.max() >= lp.shape[-1]):
        raise PreconditionError('Lookup table points outside of the priors')

    skip = py.make_list(skip, 3)
    if any(int(s) < 1 for s in skip):
        raise PreconditionError(f'Sampling strides must be positive: {skip}')
    skip = [int(s) for s in skip]
    return mf, vf, (mu, b, W, nu, gam), lp, skip, lkp


def _check_map(x, shape, name):
    if x is None:
        return
    if tuple(x.shape) != tuple(shape):
        raise PreconditionError(f'Expected `{name}` of shape {tuple(shape)} '
                                f'but got {tuple(x.shape)}')
    if not x.dtype.is_floating_point:
        raise PreconditionError(f'`{name}` must have a floating point type')


def _failure(name, e):
    warn(f'{name}: {e}', RuntimeWarning)
    return nan


def suffstats_missing(mf, vf, mu, b, W, nu, gam, lp, skip=1, lkp=None,
                      s0=None, s1=None, s2=None, chunk=None, verbose=0):
    """Sufficient statistics of a VB-GMM with missing data.

    Parameters
    ----------
    mf : (nx, ny, nz, P) tensor
        Expected intensities, E[f]. Non-finite values are missing.
    vf : (nx, ny, nz, P) tensor
        Variance of the intensities, diag(Var[f]).
    mu : (K, P) tensor
        Expected means.
    b : (K,) tensor
        Degrees of freedom of the Gaussian prior over the means.
    W : (K, P, P) tensor
        Wishart scale matrices.
    nu : (K,) tensor
        Wishart degrees of freedom.
    gam : (K,) tensor
        Mixing proportions.
    lp : (mx, my, mz, K1) tensor
        Log tissue priors.
    skip : int or [3] sequence[int], default=1
        Sampling density of the tissue priors: data voxel `i`
        is matched with prior voxel `i * skip`.
    lkp : (K,) sequence[int], default=range(K)
        Tissue class of each Gaussian.
    s0, s1, s2 : tensor, optional
        Contiguous buffers with sizes `space_needed(P, K)`.
        Statistics are added to their content.
    chunk : int, optional
        Number of slices (along the first dimension) processed at once.
        By default, one slice at a time.
    verbose : int, default=0

    Returns
    -------
    s0 : (n0,) tensor
        Zeroth moments, for each pattern and Gaussian.
    s1 : (n1,) tensor
        First moments, for each pattern and Gaussian.
    s2 : (n2,) tensor
        Second moments, for each pattern and Gaussian.
    ll : float
        Log-likelihood (NaN on failure).

    """
    t0 = timer()
    try:
        mf, vf, prm, lp, skip, lkp = _prepare(mf, vf, mu, b, W, nu, gam,
                                              lp, skip, lkp)
        P, K = mf.shape[-1], len(prm[0])
        stats = SuffStats(P, K, s0, s1, s2, device=mf.device)
        table = make_patterns(*prm)
        work = SuffStats(P, K, device=mf.device)
        ll, nvox = suffstats_pass(mf, vf, table, lp, skip, lkp, work, chunk)
    except (ValueError, MemoryError, RuntimeError) as e:
        return s0, s1, s2, _failure('suffstats_missing', e)

    stats.s0 += work.s0.to(stats.s0)
    stats.s1 += work.s1.to(stats.s1)
    stats.s2 += work.s2.to(stats.s2)
    stats.symmetrize_()
    if verbose:
        print(f'suffstats | {nvox} voxels | ll = {ll:12.6g} '
              f'| {timer() - t0:.3f} s')
    return stats.s0, stats.s1, stats.s2, ll


def responsibilities(mf, vf, mu, b, W, nu, gam, lp, skip=1, lkp=None,
                     r=None, missing='nan', chunk=None, verbose=0):
    """Tissue responsibilities of a VB-GMM with missing data.

    Voxels on the lattice defined by `skip` get Gaussian
    responsibilities; all others get Student's t responsibilities.

    Parameters
    ----------
    mf : (nx, ny, nz, P) tensor
        Expected intensities, E[f]. Non-finite values are missing.
    vf : (nx, ny, nz, P) tensor
        Variance of the intensities, diag(Var[f]).
    mu : (K, P) tensor
        Expected means.
    b : (K,) tensor
        Degrees of freedom of the Gaussian prior over the means.
    W : (K, P, P) tensor
        Wishart scale matrices.
    nu : (K,) tensor
        Wishart degrees of freedom.
    gam : (K,) tensor
        Mixing proportions.
    lp : (nx, ny, nz, K1) tensor
        Log tissue priors, on the same lattice as the data.
    skip : int or [3] sequence[int], default=1
        Stride of the lattice where Gaussian responsibilities are used.
    lkp : (K,) sequence[int], default=range(K)
        Tissue class of each Gaussian.
    r : (nx, ny, nz, K1-1) tensor, optional
        Output buffer. Responsibilities are added to its content.
    missing : {'nan', 'prior'}, default='nan'
        Value of voxels without any observed channel.
    chunk : int, optional
        Number of slices (along the first dimension) processed at once.
        By default, one slice at a time.
    verbose : int, default=0

    Returns
    -------
    r : (nx, ny, nz, K1-1) tensor
        Tissue responsibilities. The last tissue class is implicit.
        NaN where the priors are not finite or (by default) where all
        channels are missing.
    ll : float
        Log-likelihood (NaN on failure).

    """
    t0 = timer()
    try:
        mf, vf, prm, lp, skip, lkp = _prepare(mf, vf, mu, b, W, nu, gam,
                                              lp, skip, lkp)
        if lp.shape[:3] != mf.shape[:3]:
            raise PreconditionError('Priors and data must have the same '
                                    'spatial shape')
        if missing not in ('nan', 'prior'):
            raise PreconditionError(f'Unknown missing policy: {missing}')
        shape = [*mf.shape[:3], lp.shape[-1] - 1]
        _check_map(r, shape, 'r')
        table = make_patterns(*prm)
        if r is None:
            work = torch.zeros(shape, dtype=torch.float32, device=mf.device)
        else:
            work = r.clone()
        ll, nvox = responsibilities_pass(mf, vf, table, lp, skip, lkp, work,
                                         missing, chunk)
    except (ValueError, MemoryError, RuntimeError) as e:
        return r, _failure('responsibilities', e)

    if r is None:
        r = work
    else:
        r.copy_(work)
    if verbose:
        print(f'resp      | {nvox} voxels | ll = {ll:12.6g} '
              f'| {timer() - t0:.3f} s')
    return r, ll


def inu_grads(mf, vf, mu, b, W, nu, gam, lp, skip=1, lkp=None, channel=0,
              g1=None, g2=None, chunk=None, verbose=0):
    """Gradient and Hessian of the bias field of one channel.

    Parameters
    ----------
    mf : (nx, ny, nz, P) tensor
        Expected (bias-corrected) intensities, E[f].
        Non-finite values are missing.
    vf : (nx, ny, nz, P) tensor
        Variance of the intensities, diag(Var[f]).
    mu : (K, P) tensor
        Expected means.
    b : (K,) tensor
        Degrees of freedom of the Gaussian prior over the means.
    W : (K, P, P) tensor
        Wishart scale matrices.
    nu : (K,) tensor
        Wishart degrees of freedom.
    gam : (K,) tensor
        Mixing proportions.
    lp : (mx, my, mz, K1) tensor
        Log tissue priors.
    skip : int or [3] sequence[int], default=1
        Sampling density of the tissue priors.
    lkp : (K,) sequence[int], default=range(K)
        Tissue class of each Gaussian.
    channel : int, default=0
        Channel whose bias field is optimised.
    g1, g2 : (nx, ny, nz) tensor, optional
        Output buffers for the gradient and Hessian.
    chunk : int, optional
        Number of slices (along the first dimension) processed at once.
        By default, one slice at a time.
    verbose : int, default=0

    Returns
    -------
    g1 : (nx, ny, nz) tensor
        Gradients. Only written in sampled voxels where `channel`
        is observed.
    g2 : (nx, ny, nz) tensor
        Hessians. Only written in sampled voxels where `channel`
        is observed.
    ll : float
        Log-likelihood (NaN on failure).

    """
    t0 = timer()
    try:
        mf, vf, prm, lp, skip, lkp = _prepare(mf, vf, mu, b, W, nu, gam,
                                              lp, skip, lkp)
        P = mf.shape[-1]
        if not (0 <= channel < P):
            raise PreconditionError(f'Channel {channel} out of range '
                                    f'[0, {P})')
        shape = mf.shape[:3]
        _check_map(g1, shape, 'g1')
        _check_map(g2, shape, 'g2')
        table = make_patterns(*prm)
        work = [torch.zeros(shape, dtype=torch.float32, device=mf.device)
                if g is None else g.clone() for g in (g1, g2)]
        ll, nvox = inu_pass(mf, vf, table, lp, skip, lkp, channel, *work,
                            chunk)
    except (ValueError, MemoryError, RuntimeError) as e:
        return g1, g2, _failure('inu_grads', e)

    g1 = work[0] if g1 is None else g1.copy_(work[0])
    g2 = work[1] if g2 is None else g2.copy_(work[1])
    if verbose:
        print(f'inu[{channel}]    | {nvox} voxels | ll = {ll:12.6g} '
              f'| {timer() - t0:.3f} s')
    return g1, g2, ll


__all__ = ['suffstats_missing', 'responsibilities', 'inu_grads',
           'space_needed', 'PreconditionError']
