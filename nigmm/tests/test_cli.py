import math
import numpy as np
import pytest
import nigmm
from nigmm.cli import cli
from nigmm.core import cli as clitools
from nigmm.cli.mixture import parse, ParseError, run
from nigmm.tests._data import make_problem


@pytest.fixture
def archive(tmp_path):
    prob = make_problem(shape=(3, 3, 2), P=2, K=2)
    fname = tmp_path / 'problem.npz'
    np.savez(fname, **{key: val.numpy() for key, val in prob.items()})
    return str(fname)


def test_parse():
    opt = parse('inu', ['in.npz', '-s', '2', '2', '1', '-c', '1', '-k', '4'])
    assert opt.input == 'in.npz'
    assert opt.skip == [2, 2, 1]
    assert opt.channel == 1
    assert opt.chunk == 4
    assert opt.missing == 'nan'

    opt = parse('resp', ['in.npz', '-m', 'prior', '-o', 'out.npz', '-v', '0'])
    assert opt.missing == 'prior'
    assert opt.output == 'out.npz'
    assert opt.verbose == 0


@pytest.mark.parametrize('args', [
    [],
    ['in.npz', '-c'],
    ['in.npz', '-c', 'one'],
    ['in.npz', '-m', 'zero'],
    ['in.npz', '--unknown'],
    ['in.npz', '-s', '1', '2', '3', '4'],
    ['in.npz', '-s', '0'],
    ['in.npz', 'extra'],
])
def test_parse_errors(args):
    with pytest.raises(ParseError):
        parse('suffstat', args)


def test_suffstat(archive, tmp_path):
    out = str(tmp_path / 'stats.npz')
    assert cli(['suffstat', archive, '-o', out, '-v', '0']) is None
    with np.load(out) as f:
        assert set(f.files) == {'ll', 's0', 's1', 's2'}
        assert math.isfinite(float(f['ll']))


def test_resp_default_output(archive):
    assert cli(['resp', archive, '-m', 'prior', '-v', '0']) is None
    with np.load(archive[:-4] + '_resp.npz') as f:
        assert f['r'].shape == (3, 3, 2, 2)


def test_inu(archive):
    ll = run('inu', archive, channel=1, verbose=0)
    assert math.isfinite(ll)
    with np.load(archive[:-4] + '_inu.npz') as f:
        assert f['g1'].shape == (3, 3, 2)
        assert (f['g2'] >= 0).all()


def test_errors(archive, capsys):
    assert cli(['suffstat', archive, '-c', 'x']) == 1
    assert cli(['inu', archive, '-c', '5', '-v', '0']) == 1
    assert cli(['nothing']) == 1
    assert cli(['suffstat', 'does_not_exist.npz']) == 1
    capsys.readouterr()


def test_help(capsys):
    assert cli([]) is None
    assert 'suffstat' in capsys.readouterr().out
    assert cli(['resp', '-h']) is None
    assert 'nigmm resp' in capsys.readouterr().out


def test_help_lists_passes(capsys):
    assert cli(['--help']) is None
    out = capsys.readouterr().out
    assert 'Tissue responsibility maps' in out
    assert 'bias field' in out
    assert cli(['--version']) is None
    assert nigmm.__version__ in capsys.readouterr().out


def test_tokens():
    assert clitools.istag('-o')
    assert clitools.istag('--output')
    assert not clitools.istag('-1')
    assert not clitools.istag('-.5')
    assert not clitools.istag('-')
    assert clitools.pop_value(['a', 'b'], '-o') == ('a', ['b'])
    assert clitools.pop_ints(['1', '-2', '-v'], '-s') == ([1, -2], ['-v'])
    with pytest.raises(ParseError):
        clitools.pop_value(['-v'], '-o')
    with pytest.raises(ParseError):
        clitools.pop_choice(['zero'], '-m', ('nan', 'prior'))
