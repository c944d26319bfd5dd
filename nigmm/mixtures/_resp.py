"""Responsibilities of a batch of voxels that share the same pattern."""
import torch
from nigmm.core.math import softmax_lse


def del2(pattern, x, v):
    """Expected squared Mahalanobis distance.

    `(x - mu)' W (x - mu) + trace(W diag(v))`

    Parameters
    ----------
    pattern : Pattern
        Marginal parameters (Po observed channels)
    x : (N, Po) tensor
        Expected intensities of the observed channels
    v : (N, Po) tensor
        Variance of the intensities of the observed channels

    Returns
    -------
    d : (N, K) tensor

    """
    W = pattern.W
    diff = x[:, None, :] - pattern.mu                     # (N, K, Po)
    d = torch.einsum('kij,nkj->nki', W, diff).mul_(diff).sum(-1)
    d += torch.matmul(v, W.diagonal(0, -1, -2).T)
    return d


def normal_resp(pattern, x, v, p):
    """Responsibilities under the VB mixture of Gaussians.

    Parameters
    ----------
    pattern : Pattern
    x : (N, Po) tensor
    v : (N, Po) tensor
    p : (N, K) tensor
        Log prior probabilities.

    Returns
    -------
    r : (N, K) tensor
        Responsibilities.
    lse : (N,) tensor
        Log-sum-exp of the log posteriors (log-likelihood of each voxel).

    """
    q = p + pattern.conN - 0.5 * pattern.nu * del2(pattern, x, v)
    return softmax_lse(q, -1)


def student_resp(pattern, x, v, p):
    """Responsibilities under the VB mixture of Student's t distributions.

    The predictive distribution of the VB Gaussian-Wishart model is a
    Student's t distribution with
        Lam  = W * (nu + 1 - P) * b / (1 + b)
        tau  = nu + 1 - P
    so that the log-likelihood reduces to
        conT - 0.5 * (nu + 1) * log(1 + b / (b + 1) * del2)
    Heavier tails make it robust to parameter uncertainty; in practice
    it differs little from the Gaussian case.

    Parameters
    ----------
    pattern : Pattern
    x : (N, Po) tensor
    v : (N, Po) tensor
    p : (N, K) tensor
        Log prior probabilities.

    Returns
    -------
    r : (N, K) tensor
        Responsibilities.
    lse : (N,) tensor
        Log-sum-exp of the log posteriors.

    """
    b = pattern.b
    d = del2(pattern, x, v).mul_(b / (b + 1)).log1p_()
    q = p + pattern.conT - 0.5 * (pattern.nu + 1) * d
    return softmax_lse(q, -1)
