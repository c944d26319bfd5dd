from nigmm.cli.cli import commands
from .main import run
from .parser import parse, help, ParseError
import sys


_summaries = {
    'suffstat': 'Sufficient statistics of each missing-data pattern',
    'resp': 'Tissue responsibility maps',
    'inu': 'Gradient and Hessian of the bias field of one channel',
}


def _make_cli(command):

    def cli(args=None):
        # Exceptions are dealt with here
        try:
            return _cli(command, args)
        except ParseError as e:
            print(help.format(command=command))
            print(f'[ERROR] {str(e)}', file=sys.stderr)
            return 1
        except Exception as e:
            print(f'[ERROR] {str(e)}', file=sys.stderr)
            return 1

    cli.__doc__ = _summaries[command]
    return cli


def _cli(command, args):
    """Command-line interface for a mixture pass without exception handling"""
    args = sys.argv[1:] if args is None else args

    options = parse(command, args)
    if not options:
        return

    ll = run(command, options.input, output=options.output,
             skip=options.skip, channel=options.channel,
             missing=options.missing, chunk=options.chunk,
             verbose=options.verbose)
    if ll != ll:
        print(f'[ERROR] {command} failed (see warnings)', file=sys.stderr)
        return 1


for _command in _summaries:
    commands[_command] = _make_cli(_command)
