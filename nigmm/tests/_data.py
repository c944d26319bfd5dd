"""Synthetic problems shared by the tests."""
import torch


def make_problem(shape=(4, 4, 4), P=2, K=3, K1=None, missing=0.2, seed=1):
    """Random VB-GMM parameters, data and priors.

    Parameters
    ----------
    shape : [3] sequence[int]
        Spatial shape of the data and priors.
    P : int
        Number of channels.
    K : int
        Number of Gaussians.
    K1 : int, default=K+1
        Number of tissue classes.
    missing : float
        Probability that a channel is missing in a voxel.
    seed : int

    Returns
    -------
    dict

    """
    g = torch.Generator().manual_seed(seed)
    K1 = K1 or K + 1
    mu = torch.randn([K, P], generator=g, dtype=torch.double) * 2
    A = torch.randn([K, P, P], generator=g, dtype=torch.double)
    W = A.matmul(A.transpose(-1, -2)) / P + torch.eye(P, dtype=torch.double)
    b = torch.full([K], 10., dtype=torch.double)
    nu = torch.full([K], P + 3., dtype=torch.double)
    gam = torch.full([K], 1 / K, dtype=torch.double)

    mf = torch.randn([*shape, P], generator=g) * 2
    mask = torch.rand([*shape, P], generator=g) < missing
    mf[mask] = float('nan')
    vf = torch.rand([*shape, P], generator=g) * 0.1
    lp = torch.randn([*shape, K1], generator=g).log_softmax(-1)
    lkp = torch.arange(K) % K1

    return dict(mf=mf, vf=vf, mu=mu, b=b, W=W, nu=nu, gam=gam, lp=lp,
                lkp=lkp)


def params(prob):
    """Positional arguments of the entry points."""
    return [prob[key] for key in ('mf', 'vf', 'mu', 'b', 'W', 'nu', 'gam', 'lp')]


def failing_after(fn, n, error=RuntimeError):
    """Wrap `fn` so that every call after the `n`-th one raises `error`."""
    calls = []

    def wrapped(*args, **kwargs):
        calls.append(None)
        if len(calls) > n:
            raise error('out of memory')
        return fn(*args, **kwargs)

    return wrapped
