import os
import numpy as np
import torch
from nigmm.mixtures import suffstats_missing, responsibilities, inu_grads


_required = ('mf', 'vf', 'mu', 'b', 'W', 'nu', 'gam', 'lp')


def load(fname):
    """Load the arrays of a mixture problem from a .npz archive.

    Parameters
    ----------
    fname : str

    Returns
    -------
    dict[str, tensor]

    """
    with np.load(fname) as f:
        missing = [key for key in _required if key not in f.files]
        if missing:
            raise ValueError(f'Arrays {missing} not found in {fname}')
        return {key: torch.as_tensor(f[key]) for key in f.files}


def run(command, input, output=None, skip=None, channel=0, missing='nan',
        chunk=None, verbose=1):
    """Run one pass of the missing-data VB-GMM on an archived problem.

    Parameters
    ----------
    command : {'suffstat', 'resp', 'inu'}
        Pass to run.
    input : str
        Path to the input archive.
    output : str, optional
        Path to the output archive. Default: `{input}_{command}.npz`
    skip : list[int], optional
        Sampling strides. Default: from the archive, else 1.
    channel : int, default=0
        Channel whose bias field is optimised ('inu' only).
    missing : {'nan', 'prior'}, default='nan'
        Value of voxels without observed channels ('resp' only).
    chunk : int, optional
        Number of slices processed at once.
    verbose : int, default=1

    Returns
    -------
    ll : float
        Log-likelihood (NaN if the pass failed).

    """
    dat = load(input)
    if skip is None:
        skip = dat['skip'].tolist() if 'skip' in dat else 1
    lkp = dat.get('lkp', None)
    args = [dat[key] for key in _required]
    opt = dict(skip=skip, lkp=lkp, chunk=chunk, verbose=verbose)

    if command == 'suffstat':
        s0, s1, s2, ll = suffstats_missing(*args, **opt)
        out = dict(s0=s0, s1=s1, s2=s2)
    elif command == 'resp':
        r, ll = responsibilities(*args, missing=missing, **opt)
        out = dict(r=r)
    elif command == 'inu':
        g1, g2, ll = inu_grads(*args, channel=channel, **opt)
        out = dict(g1=g1, g2=g2)
    else:
        raise ValueError(f'Unknown command {command}')

    if ll != ll:
        return ll
    if output is None:
        base, _ = os.path.splitext(input)
        output = f'{base}_{command}.npz'
    out = {key: val.cpu().numpy() for key, val in out.items()}
    np.savez(output, ll=np.asarray(ll), **out)
    if verbose:
        print(f'Written: {output}')
    return ll
