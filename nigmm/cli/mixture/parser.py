from nigmm.core import cli
from nigmm.core.cli import ParseError
from nigmm.core.struct import Structure


class Mixture(Structure):
    """Structure that holds parameters of the mixture commands"""
    command: str = 'suffstat'
    input: str = None
    output: str = None
    skip: list = None
    channel: int = 0
    missing: str = 'nan'
    chunk: int = None
    verbose: int = 1


help = r"""[nigmm] Missing-data VB-GMM passes

usage:
    nigmm {command} INPUT [-o OUTPUT] [-s *SKIP] [-c CHANNEL]
                 [-m {{nan,prior}}] [-k CHUNK] [-v [LEVEL]]

    INPUT is a .npz archive that contains the arrays:
        mf  (nx, ny, nz, P)   expected intensities (NaN = missing)
        vf  (nx, ny, nz, P)   intensity variances
        mu  (K, P)            expected means
        b   (K,)              mean degrees of freedom
        W   (K, P, P)         Wishart scale matrices
        nu  (K,)              Wishart degrees of freedom
        gam (K,)              mixing proportions
        lp  (mx, my, mz, K1)  log tissue priors
        lkp (K,)              [optional] tissue class of each Gaussian
        skip (3,)             [optional] sampling strides

    -o, --output         Output archive (default: INPUT_{command}.npz)
    -s, --skip           Strides, 1 to 3 values (default: from INPUT, else 1)
    -c, --channel        [inu] Channel whose bias is optimised (default: 0)
    -m, --missing        [resp] Value of all-missing voxels (default: nan)
    -k, --chunk          Number of slices processed at once (default: 1)
    -v, --verbose        Verbosity level (default: 1)
"""


def parse(command, args):
    """

    Parameters
    ----------
    command : {'suffstat', 'resp', 'inu'}
        Name of the pass
    args : list of str
        Command line arguments (without the command name)

    Returns
    -------
    Mixture
        Filled structure

    """

    struct = Mixture(command=command)

    if cli.next_isvalue(args):
        struct.input, args = cli.pop_value(args)

    while args:
        if cli.next_isvalue(args):
            raise ParseError(f'Value {args[0]} does not seem to belong '
                             f'to a tag.')
        tag, *args = args
        if tag in ('-o', '--output'):
            struct.output, args = cli.pop_value(args, tag)
        elif tag in ('-s', '--skip'):
            struct.skip, args = cli.pop_ints(args, tag, max_count=3)
        elif tag in ('-c', '--channel'):
            struct.channel, args = cli.pop_int(args, tag)
        elif tag in ('-m', '--missing'):
            struct.missing, args = cli.pop_choice(args, tag, ('nan', 'prior'))
        elif tag in ('-k', '--chunk'):
            struct.chunk, args = cli.pop_int(args, tag)
        elif tag in ('-v', '--verbose'):
            struct.verbose = 1
            if cli.next_isvalue(args):
                struct.verbose, args = cli.pop_int(args, tag)
        elif tag in ('-h', '--help'):
            print(help.format(command=command))
            return None
        else:
            raise ParseError(f'Unknown tag {tag}')

    if struct.input is None:
        raise ParseError('An input archive is required')
    if struct.skip is not None and any(s < 1 for s in struct.skip):
        raise ParseError(f'Sampling strides must be positive: {struct.skip}')
    return struct
