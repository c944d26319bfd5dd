import math
import pytest
import torch
from nigmm.mixtures import responsibilities, suffstats_missing, \
    make_patterns, normal_resp, SuffStats
from nigmm.tests._data import make_problem, params, failing_after


def test_shape_and_closure():
    prob = make_problem(shape=(4, 3, 5), P=2, K=3, K1=3, missing=0.)
    prob['lkp'] = torch.as_tensor([0, 1, 2])
    r, ll = responsibilities(*params(prob), lkp=prob['lkp'], skip=2)
    assert r.shape == (4, 3, 5, 2)
    assert r.dtype == torch.float32
    assert torch.isfinite(r).all()
    assert (r >= 0).all() and (r.sum(-1) <= 1 + 1e-6).all()
    assert math.isfinite(ll)


def test_all_tissues_explicit():
    # with an extra (unused) last tissue, responsibilities sum to one
    prob = make_problem(shape=(3, 3, 3), P=2, K=4, K1=4, missing=0.3)
    prob['lkp'] = torch.as_tensor([0, 1, 1, 2])
    r, ll = responsibilities(*params(prob), lkp=prob['lkp'], skip=2)
    ok = torch.isfinite(r).all(-1)
    assert ok.any()
    assert torch.allclose(r[ok].sum(-1), torch.ones([]), atol=1e-5)


def test_missing_voxels():
    prob = make_problem(shape=(2, 2, 2), P=2, K=2, K1=3, missing=0.)
    prob['mf'][0, 1, 0] = float('nan')
    prob['lp'][1, 1, 1, 0] = float('nan')
    r, ll = responsibilities(*params(prob), lkp=prob['lkp'])
    assert torch.isnan(r[0, 1, 0]).all()
    assert torch.isnan(r[1, 1, 1]).all()
    assert torch.isfinite(r[0, 0, 0]).all()
    assert (torch.isfinite(r).all(-1)).sum() == 6


def test_missing_prior_policy():
    prob = make_problem(shape=(2, 2, 2), P=2, K=2, K1=3, missing=0.)
    prob['mf'][0, 1, 0] = float('nan')
    r, ll = responsibilities(*params(prob), lkp=prob['lkp'], missing='prior')
    assert torch.isfinite(r).all()

    # closed soft-max of the tissue log priors: the implicit class has
    # logit 0 and the last tissue is not written
    lt = prob['lp'][0, 1, 0].double()
    ref = lt.exp() / (1 + lt.exp().sum())
    assert torch.allclose(r[0, 1, 0].double(), ref[:-1], rtol=1e-3)
    assert r[0, 1, 0].sum() < 1


def test_missing_prior_shared_tissue():
    # two Gaussians in the same tissue: its prior is counted once
    prob = make_problem(shape=(2, 2, 1), P=1, K=3, K1=3, missing=0.)
    prob['mf'][1, 1, 0] = float('nan')
    lkp = [0, 0, 1]
    r, ll = responsibilities(*params(prob), lkp=lkp, missing='prior')
    lt = prob['lp'][1, 1, 0].double()
    ref = lt.exp() / (1 + lt.exp().sum())
    assert torch.allclose(r[1, 1, 0].double(), ref[:-1], rtol=1e-3)


def test_last_tissue_dropped():
    prob = make_problem(shape=(3, 2, 2), P=2, K=2, K1=2, missing=0.2)
    prob['lkp'] = torch.as_tensor([0, 1])
    r2, _ = responsibilities(*params(prob), lkp=prob['lkp'])
    assert r2.shape[-1] == 1

    # same priors for the first two tissues, extra tissue never used
    lp3 = torch.cat([prob['lp'], torch.zeros([3, 2, 2, 1])], -1)
    args = params(prob)
    args[-1] = lp3
    r3, _ = responsibilities(*args, lkp=prob['lkp'])
    assert torch.allclose(r2[..., 0], r3[..., 0], equal_nan=True)


def test_gaussian_lattice_matches_kernel():
    prob = make_problem(shape=(2, 3, 2), P=2, K=3, K1=4, missing=0.)
    r, ll = responsibilities(*params(prob), lkp=prob['lkp'], skip=1)

    mu, b, W, nu, gam = [prob[k] for k in ('mu', 'b', 'W', 'nu', 'gam')]
    pattern = make_patterns(mu, b, W, nu, gam)[3]
    x = prob['mf'].reshape([-1, 2]).double()
    v = prob['vf'].reshape([-1, 2]).double()
    p = prob['lp'].reshape([-1, 4])[:, prob['lkp']].double()
    q, lse = normal_resp(pattern, x, v, p)
    assert torch.allclose(r.reshape([-1, 3]).double(), q, atol=1e-6)
    assert abs(ll - lse.sum().item()) < 1e-6 * abs(ll)


def test_consistent_with_suffstats():
    prob = make_problem(shape=(3, 3, 3), P=2, K=3, K1=4, missing=0.3)
    r, ll = responsibilities(*params(prob), lkp=prob['lkp'])
    s0, s1, s2, ll0 = suffstats_missing(*params(prob), lkp=prob['lkp'])
    stats = SuffStats(2, 3, s0, s1, s2)
    total = sum(stats[code][0] for code in range(4))
    ok = torch.isfinite(r).all(-1)
    assert torch.allclose(r[ok].double().sum(0), total, rtol=1e-5)
    assert abs(ll - ll0) < 1e-6 * abs(ll)


def test_student_off_lattice():
    prob = make_problem(shape=(3, 3, 3), P=2, K=3, K1=4, missing=0.)
    rN, _ = responsibilities(*params(prob), lkp=prob['lkp'], skip=1)
    rT, _ = responsibilities(*params(prob), lkp=prob['lkp'], skip=2)
    # on-lattice voxels are identical, others use the Student's t kernel
    assert torch.allclose(rN[::2, ::2, ::2], rT[::2, ::2, ::2])
    assert not torch.allclose(rN[1, 1, 1], rT[1, 1, 1], rtol=0, atol=1e-7)


def test_accumulate_into_buffer():
    prob = make_problem(shape=(2, 2, 2), P=2, K=2, K1=3, missing=0.)
    r = torch.ones([2, 2, 2, 2])
    out, ll = responsibilities(*params(prob), lkp=prob['lkp'], r=r)
    assert out is r
    assert (r >= 1).all()


def test_preconditions():
    prob = make_problem(shape=(2, 2, 2), P=2, K=2, K1=3)
    r = torch.full([2, 2, 2, 2], 3.)
    args = params(prob)
    args[-1] = torch.zeros([4, 4, 4, 3])
    with pytest.warns(RuntimeWarning):
        out, ll = responsibilities(*args, r=r)
    assert math.isnan(ll)
    assert (r == 3).all()
    with pytest.warns(RuntimeWarning):
        out, ll = responsibilities(*params(prob), missing='zero')
    assert math.isnan(ll)
    with pytest.warns(RuntimeWarning):
        out, ll = responsibilities(*params(prob), r=torch.zeros([2, 2, 2, 3]))
    assert math.isnan(ll)


@pytest.mark.parametrize('error', [RuntimeError, MemoryError])
def test_failure_during_pass(monkeypatch, error):
    prob = make_problem(shape=(4, 3, 3), P=2, K=3, K1=4, missing=0.3)
    monkeypatch.setattr('nigmm.mixtures._map.normal_resp',
                        failing_after(normal_resp, 2, error))
    r = torch.full([4, 3, 3, 3], 7.)
    with pytest.warns(RuntimeWarning):
        out, ll = responsibilities(*params(prob), lkp=prob['lkp'], r=r)
    assert math.isnan(ll)
    assert out is r
    assert (r == 7).all()
