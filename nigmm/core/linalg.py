"""Linear algebra for small symmetric positive (semi-)definite matrices.

All functions are batched over leading dimensions and loop over the
(small) matrix dimension, so that a whole stack of covariance or
precision matrices is processed at once.
"""
import torch


def trace(a, keepdim=False):
    """Compute the trace of a matrix (or batch)

    Parameters
    ----------
    a : (..., M, M) tensor

    Returns
    -------
    t : (...) tensor

    """
    t = a.diagonal(0, -1, -2).sum(-1)
    if keepdim:
        t = t[..., None, None]
    return t


def cholesky(a):
    """Cholesky decomposition with a floor on the pivots.

    Pivots that fall below `(1e-7 * (trace(a) + 1e-40)) ** 2` are replaced
    by this value, so that singular or badly conditioned matrices still
    yield a finite (if distorted) factor.

    Parameters
    ----------
    a : (..., M, M) tensor
        Symmetric matrix.

    Returns
    -------
    l : (..., M, M) tensor
        Copy of `a` whose strict lower triangle holds the strict lower
        triangle of the Cholesky factor. The upper triangle and the
        diagonal are those of the input.
    d : (..., M) tensor
        Diagonal of the Cholesky factor.

    """
    l = a.clone()
    n = l.shape[-1]
    d = l.new_empty(l.shape[:-1])
    floor = trace(l).add_(1e-40).mul_(1e-7).square_()
    for i in range(n):
        # sm[j-i] = a[i, j] - sum_{k<i} l[i, k] * l[j, k],   j >= i
        sm = l[..., i, i:] - torch.matmul(l[..., i:, :i],
                                          l[..., i, :i, None])[..., 0]
        pivot = sm[..., 0]
        pivot = torch.where(pivot <= floor, floor, pivot)
        d[..., i] = pivot.sqrt()
        l[..., i+1:, i] = sm[..., 1:] / d[..., i, None]
    return l, d


def cholesky_solve(l, d, b):
    """Solve `a @ x = b` using the output of `cholesky(a)`.

    Parameters
    ----------
    l : (..., M, M) tensor
        Factor returned by `cholesky` (strict lower triangle used).
    d : (..., M) tensor
        Diagonal returned by `cholesky`.
    b : (..., M, N) tensor
        Right-hand sides (columns).

    Returns
    -------
    x : (..., M, N) tensor

    """
    n = l.shape[-1]
    x = b.clone()
    # forward substitution
    for i in range(n):
        sm = x[..., i, :] - torch.matmul(l[..., i, None, :i], x[..., :i, :])[..., 0, :]
        x[..., i, :] = sm / d[..., i, None]
    # backward substitution
    for i in reversed(range(n)):
        sm = x[..., i, :] - torch.matmul(l[..., i+1:, i, None].transpose(-1, -2),
                                         x[..., i+1:, :])[..., 0, :]
        x[..., i, :] = sm / d[..., i, None]
    return x


def inv(a):
    """Inverse of a symmetric positive-definite matrix and its log-det.

    Parameters
    ----------
    a : (..., M, M) tensor
        Symmetric matrix.

    Returns
    -------
    ia : (..., M, M) tensor
        Inverse matrix.
    logdet : (...) tensor
        `-2 * sum(log(diag(chol(a))))`, that is, minus the log-determinant
        of `a` or, equivalently, the log-determinant of its inverse.

    """
    n = a.shape[-1]
    l, d = cholesky(a)
    eye = torch.eye(n, dtype=a.dtype, device=a.device)
    eye = eye.expand(a.shape).clone()
    ia = cholesky_solve(l, d, eye)
    logdet = d.log().sum(-1).mul_(-2)
    return ia, logdet
