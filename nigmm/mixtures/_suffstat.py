"""Sufficient statistics of a VB-GMM with missing data."""
import torch
from ._resp import normal_resp
from ._voxels import get_voxels, get_priors, sampled_shape, sample_priors, \
    chunks, groups


def suffstats_pass(mf, vf, table, lp, skip, lkp, stats, chunk=None):
    """Accumulate sufficient statistics over a sampled lattice.

    Parameters
    ----------
    mf : (nx, ny, nz, P) tensor
        Expected intensities. Non-finite values are missing.
    vf : (nx, ny, nz, P) tensor
        Variance of the intensities.
    table : PatternTable
        Marginal parameters of all patterns.
    lp : (mx, my, mz, K1) tensor
        Log tissue priors.
    skip : [3] list[int]
        Sampling stride of the priors.
    lkp : (K,) tensor[long]
        Tissue class of each Gaussian.
    stats : SuffStats
        Statistics, updated in-place.
    chunk : int, optional
        Number of slices (along the first dimension) processed at once.
        Default: one.

    Returns
    -------
    ll : float
        Sum of the log-likelihood of all voxels used.
    nvox : int
        Number of voxels used.

    """
    shape = sampled_shape(mf.shape[:3], lp.shape[:3], skip)
    mf = mf[:shape[0], :shape[1], :shape[2]]
    vf = vf[:shape[0], :shape[1], :shape[2]]
    lp = sample_priors(lp, shape, skip)

    ll = torch.zeros([], dtype=torch.double)
    nvox = 0
    for slab in chunks(shape[0], chunk):
        code, x, v = get_voxels(mf[slab], vf[slab])
        p, valid = get_priors(lp[slab], lkp)
        valid &= code > 0
        nvox += int(valid.sum())

        for c, index in groups(code, valid):
            pattern = table[c]
            xo = x[index][:, pattern.channels]
            vo = v[index][:, pattern.channels]
            r, lse = normal_resp(pattern, xo, vo, p[index])
            ll += lse.sum().cpu()

            s0, s1, s2 = stats[c]
            s0 += r.sum(0).to(s0)
            s1 += torch.matmul(r.T, xo).to(s1)
            # only the lower triangle is accumulated
            rx = r[:, :, None] * xo[:, None, :]                # (N, K, Po)
            ss2 = torch.matmul(rx.permute(1, 2, 0), xo)        # (K, Po, Po)
            ss2.diagonal(0, -1, -2).add_(torch.matmul(r.T, vo))
            s2 += ss2.tril_().to(s2)

    stats.symmetrize_()
    return ll.item(), nvox
