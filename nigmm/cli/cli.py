"""Entry point of the `nigmm` command.

Each pass of the engine registers its command-line function in
`commands` (see `nigmm.cli.mixture`). The first line of the function's
docstring is its summary in the help.
"""
import sys
from nigmm._version import __version__


# Passes register themselves in this dictionary
commands = dict()

_help = r"""[nigmm] Missing-data VB-GMM passes (version {version})

usage:
    nigmm <PASS> INPUT.npz [options]
    nigmm <PASS> -h
    nigmm --version

passes:
{passes}"""


def help():
    """Help for the generic 'nigmm' command, with one line per pass."""
    passes = ''
    for name in sorted(commands):
        summary = (commands[name].__doc__ or '').strip().split('\n')[0]
        passes += f'    {name:<10s} {summary}\n'
    return _help.format(version=__version__, passes=passes)


def cli(args=None):
    """Run the pass named by the first argument."""
    args = sys.argv[1:] if args is None else args

    if not args or args[0] in ('-h', '--help'):
        print(help())
        return
    if args[0] in ('-V', '--version'):
        print(__version__)
        return
    name, *args = args
    if name not in commands:
        print(help())
        print(f'[ERROR] Unknown pass "{name}"', file=sys.stderr)
        return 1
    return commands[name](args)


def main():
    sys.exit(cli())
