"""Mathematical functions used by the mixture kernels.

The exponential used inside all soft-max computations is not `torch.exp`
but a cheaper approximation: the integer part of the argument is looked
up in a fixed table of `exp(i)`, `i in [-128, 127]`, and the fractional
part is refined with a truncated generalised continued fraction,
    exp(r) ~= 1 + 2r / (2 - r + r^2/6),    |r| <= 1/2
The relative error is below 1e-4 over the whole range.

Arguments are expected to lie in [-128, 127]. Soft-max arguments are
always shifted so that their maximum is zero, and values below
log(eps) ~= -36 vanish against the maximum anyway.
"""
import math as pymath
import torch
from .constants import ninf


# Frozen at import time, never modified afterwards.
_exp_lkp = torch.arange(-128, 128, dtype=torch.double).exp_()


def fastexp(input):
    """Approximate exponential.

    Parameters
    ----------
    input : tensor
        Input tensor (floating point).

    Returns
    -------
    output : tensor
        Approximation of `exp(input)`.

    """
    input = torch.as_tensor(input)
    if not input.dtype.is_floating_point:
        input = input.to(torch.get_default_dtype())
    i = torch.round(input).clamp_(-128, 127)
    i.masked_fill_(torch.isnan(i), 0)
    r = input - i
    rr = r * r
    lkp = _exp_lkp.to(device=input.device, dtype=input.dtype)
    output = lkp[i.long() + 128]
    output *= 1 + 2 * r / (2 - r + rr / 6)
    output.masked_fill_(input == ninf, 0)
    return output


def softmax_lse(input, dim=-1, implicit=False):
    """Numerically stabilised soft-max that also returns the log-sum-exp.

    Parameters
    ----------
    input : tensor
        Logits.
    dim : int, default=-1
        Dimension along which to apply the soft-max.
    implicit : bool, default=False
        Assume that an additional (hidden) class with logit zero exists.
        Its probability is not returned, so that the output sums to
        less than one.

    Returns
    -------
    output : tensor
        Soft-maxed tensor, same shape as `input`.
    lse : tensor
        Log-sum-exp of the logits (including the implicit class),
        with `dim` reduced.

    """
    input = torch.as_tensor(input)
    maxval = input.max(dim=dim, keepdim=True).values
    if implicit:
        maxval.clamp_min_(0)  # don't forget the class full of zeros

    output = fastexp(input - maxval)
    sumval = output.sum(dim=dim, keepdim=True)
    if implicit:
        sumval += fastexp(maxval.neg())
    output /= sumval

    lse = sumval.log_().add_(maxval).squeeze(dim)
    return output, lse


def digamma(input):
    """Asymptotic approximation of the digamma function.

    The argument is shifted above 7 with `psi(z) = psi(z+1) - 1/z`,
    after which a series in 1/(z-1/2) is used.

    Parameters
    ----------
    input : tensor or float

    Returns
    -------
    output : tensor or float

    """
    if not torch.is_tensor(input):
        z, f = float(input), 0.
        while z < 7:
            f -= 1 / z
            z += 1
        z -= 0.5
        r = 1 / z
        r2 = r * r
        r4 = r2 * r2
        f += (pymath.log(z) + r2 / 24 - 7 * r4 / 960
              + 31 * r4 * r2 / 8064 - 127 * r4 * r4 / 30720)
        return f

    z = input.clone()
    f = torch.zeros_like(z)
    small = z < 7
    while small.any():
        f[small] -= z[small].reciprocal()
        z[small] += 1
        small = z < 7
    z -= 0.5
    r = z.reciprocal()
    r2 = r * r
    r4 = r2 * r2
    f += z.log()
    f += r2 / 24 - 7 * r4 / 960 + 31 * r4 * r2 / 8064 - 127 * r4 * r4 / 30720
    return f


def mvdigamma(input, order=1):
    """Multivariate digamma: `sum_{j<order} digamma(input - j/2)`"""
    output = 0
    for p in range(1, order + 1):
        output = output + digamma(input + (1 - p) / 2)
    return output
