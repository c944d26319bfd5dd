"""PyTorch utilities used everywhere."""
import math
import torch


def popcount(code):
    """Number of bits set in a (python) integer."""
    return bin(code).count('1')


def observed_channels(code, nb_channels):
    """Indices of the channels whose bit is set in `code`.

    Parameters
    ----------
    code : int
        Bitmask of observed channels.
    nb_channels : int
        Total number of channels.

    Returns
    -------
    list[int]
        Channel indices, in increasing order.

    """
    return [j for j in range(nb_channels) if (code >> j) & 1]


def binomial(n, k):
    """Number of ways to choose `k` elements among `n`."""
    return math.comb(n, k)


def bitmask(mask):
    """Encode a boolean mask along the last dimension as an integer code.

    Parameters
    ----------
    mask : (..., P) tensor[bool]

    Returns
    -------
    code : (...) tensor[long]
        `sum_j mask[..., j] << j`

    """
    nb_channels = mask.shape[-1]
    weights = torch.as_tensor([1 << j for j in range(nb_channels)],
                              dtype=torch.long, device=mask.device)
    return (mask.long() * weights).sum(-1)
