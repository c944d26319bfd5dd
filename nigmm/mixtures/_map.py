"""Responsibility maps of a VB-GMM with missing data."""
import torch
from nigmm.core.math import softmax_lse
from nigmm.core.constants import nan
from ._resp import normal_resp, student_resp
from ._voxels import get_voxels, get_priors, chunks, groups, unravel


def responsibilities_pass(mf, vf, table, lp, skip, lkp, r, missing='nan',
                          chunk=None):
    """Accumulate tissue responsibilities of all voxels.

    Voxels that lie on the lattice defined by `skip` use the same
    Gaussian responsibilities as the ones used to compute sufficient
    statistics. All others use Student's t responsibilities.

    Parameters
    ----------
    mf : (nx, ny, nz, P) tensor
        Expected intensities. Non-finite values are missing.
    vf : (nx, ny, nz, P) tensor
        Variance of the intensities.
    table : PatternTable
        Marginal parameters of all patterns.
    lp : (nx, ny, nz, K1) tensor
        Log tissue priors.
    skip : [3] list[int]
        Sampling stride of the Gaussian lattice.
    lkp : (K,) tensor[long]
        Tissue class of each Gaussian.
    r : (nx, ny, nz, K1-1) tensor
        Tissue responsibilities, updated in-place.
        Responsibilities of the last tissue class are implicit.
    missing : {'nan', 'prior'}, default='nan'
        Value written in voxels without any observed channel:
        - 'nan'   : not-a-number in all classes
        - 'prior' : closed soft-max of the log tissue priors
    chunk : int, optional
        Number of slices (along the first dimension) processed at once.
        Default: one.

    Returns
    -------
    ll : float
        Sum of the log-likelihood of all voxels with observed data.
    nvox : int
        Number of voxels with observed data.

    """
    K1 = r.shape[-1] + 1
    shape = mf.shape[:3]
    keep = lkp < K1 - 1

    ongrid = [torch.arange(n, device=mf.device) % s == 0
              for n, s in zip(shape, skip)]
    ongrid = (ongrid[0][:, None, None] & ongrid[1][None, :, None]
              & ongrid[2][None, None, :])

    ll = torch.zeros([], dtype=torch.double)
    nvox = 0
    for slab in chunks(shape[0], chunk):
        code, x, v = get_voxels(mf[slab], vf[slab])
        p, valid = get_priors(lp[slab], lkp)
        gauss = ongrid[slab].reshape(-1)
        out = r[slab]
        subshape = out.shape[:3]

        # invalid priors
        index = unravel((~valid).nonzero(as_tuple=True)[0], subshape)
        out[index] = nan

        # no observed channel
        index = (valid & (code == 0)).nonzero(as_tuple=True)[0]
        if missing == 'prior':
            # closed soft-max of the tissue priors
            lt = lp[slab].reshape([-1, K1])[index].double()
            q, _ = softmax_lse(lt, -1, implicit=True)
            index = unravel(index, subshape)
            out[index] += q[:, :-1].to(out)
        else:
            out[unravel(index, subshape)] = nan

        valid &= code > 0
        nvox += int(valid.sum())
        for c, group in groups(code, valid):
            pattern = table[c]
            ongroup = gauss[group]
            for index, resp in ((group[ongroup], normal_resp),
                                (group[~ongroup], student_resp)):
                if not len(index):
                    continue
                xo = x[index][:, pattern.channels]
                vo = v[index][:, pattern.channels]
                q, lse = resp(pattern, xo, vo, p[index])
                ll += lse.sum().cpu()

                index = unravel(index, subshape)
                rk = out[index]
                rk.index_add_(1, lkp[keep], q[:, keep].to(rk))
                out[index] = rk

    return ll.item(), nvox
