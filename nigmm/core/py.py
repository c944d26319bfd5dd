"""Python utilities."""
from typing import List


def make_list(input, n=None, default=None) -> List:
    """Ensure that the input is a list and pad/crop if necessary.

    Parameters
    ----------
    input : scalar or sequence
        Input argument(s).
    n : int, optional
        Target length.
    default : optional
        Default value to pad with.
        If not provided, replicate the last value.

    Returns
    -------
    output : list
        Output arguments.

    """
    if isinstance(input, (list, tuple)):
        input = list(input)
    elif hasattr(input, 'tolist'):
        input = input.tolist()
        if not isinstance(input, list):
            input = [input]
    else:
        input = [input]
    if n is None:
        return input
    if len(input) > n:
        return input[:n]
    if len(input) < n:
        if default is None:
            if not input:
                raise ValueError('Cannot pad an empty sequence without '
                                 'a default value')
            default = input[-1]
        input += [default] * (n - len(input))
    return input
