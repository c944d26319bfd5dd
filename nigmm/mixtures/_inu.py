"""Gradient and Hessian for intensity non-uniformity (INU) updates.

For a single Gaussian, the objective function w.r.t. the log-bias `b_c`
of channel `c` is
    E = (exp(B) x - mu)' W (exp(B) x - mu) / 2 - log|exp(B)' W exp(B)| / 2
with `B = diag(e_c * b_c)`. Taking its expectation under
`x ~ N(mx, diag(vx))` and a quadratic approximation around `b_c = 0`
(the current bias is absorbed in `mx`) yields
    g = W[c, c] * vx[c] + mx[c] * W[c, :] @ (mx - mu) - 1
    H = W[c, c] * (mx[c]**2 + vx[c]) + 1
The true Hessian is `H + g`, which is only used when `g > 0` so that the
approximation stays positive and the Newton step conservative.
"""
import torch
from ._resp import normal_resp
from ._voxels import get_voxels, get_priors, sampled_shape, sample_priors, \
    chunks, groups, unravel


def make_index(nb_channels, channel):
    """Position of a channel among the observed channels of each pattern.

    Parameters
    ----------
    nb_channels : int
        Number of channels (P).
    channel : int
        Channel of interest.

    Returns
    -------
    index : list[int or None]
        For each code, the local index of `channel`, or None if it is
        missing under that pattern.

    """
    index = []
    for code in range(1 << nb_channels):
        if code & (1 << channel):
            index.append(bin(code & ((1 << channel) - 1)).count('1'))
        else:
            index.append(None)
    return index


def inu_pass(mf, vf, table, lp, skip, lkp, channel, g1, g2, chunk=None):
    """Compute INU gradients and Hessians over a sampled lattice.

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
    channel : int
        Channel whose bias field is optimised.
    g1 : (nx, ny, nz) tensor
        Gradients, written in-place where the channel is observed.
    g2 : (nx, ny, nz) tensor
        Hessians, written in-place where the channel is observed.
    chunk : int, optional
        Number of slices (along the first dimension) processed at once.
        Default: one.

    Returns
    -------
    ll : float
        Sum of the log-likelihood of all voxels used.
    nvox : int
        Number of voxels where gradients were written.

    """
    shape = sampled_shape(mf.shape[:3], lp.shape[:3], skip)
    mf = mf[:shape[0], :shape[1], :shape[2]]
    vf = vf[:shape[0], :shape[1], :shape[2]]
    lp = sample_priors(lp, shape, skip)
    index_channel = make_index(table.nb_channels, channel)

    ll = torch.zeros([], dtype=torch.double)
    nvox = 0
    for slab in chunks(shape[0], chunk):
        code, x, v = get_voxels(mf[slab], vf[slab])
        p, valid = get_priors(lp[slab], lkp)
        valid &= code > 0
        g1slab, g2slab = g1[slab], g2[slab]
        subshape = [slab.stop - slab.start, *shape[1:]]

        for c, index in groups(code, valid):
            pattern = table[c]
            xo = x[index][:, pattern.channels]
            vo = v[index][:, pattern.channels]
            r, lse = normal_resp(pattern, xo, vo, p[index])
            ll += lse.sum().cpu()

            nc = index_channel[c]
            if nc is None:
                continue
            W = pattern.W
            nup = r * pattern.nu                                  # (N, K)
            gk = torch.einsum('nkj,kj->nk', xo[:, None, :] - pattern.mu,
                              W[:, :, nc])
            g = (nup * gk).sum(-1)
            h = torch.matmul(nup, W[:, nc, nc])
            xc, vc = xo[:, nc], vo[:, nc]
            g = g * xc + h * vc - 1
            h = h * (xc * xc + vc) + 1
            h = torch.where(g > 0, h + g, h)

            index = unravel(index, subshape)
            g1slab[index] = g.to(g1slab)
            g2slab[index] = h.to(g2slab)
            nvox += len(g)

    return ll.item(), nvox
