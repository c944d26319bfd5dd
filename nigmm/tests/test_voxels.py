import pytest
import torch
from nigmm.mixtures import get_voxels, get_priors
from nigmm.mixtures._voxels import groups, chunks, sampled_shape, unravel


def test_get_voxels():
    mf = torch.as_tensor([[[[1., float('nan'), 3.]]]])
    vf = torch.ones([1, 1, 1, 3])
    code, x, v = get_voxels(mf, vf)
    assert code.tolist() == [0b101]
    assert x.dtype == torch.double
    assert x.shape == (1, 3) and v.shape == (1, 3)


def test_get_priors():
    lp = torch.as_tensor([[[[-1., -2.]], [[float('-inf'), -1.]]]])
    p, valid = get_priors(lp, torch.as_tensor([1, 0, 1]))
    assert p.shape == (2, 3)
    assert valid.tolist() == [True, False]


def test_groups():
    g = torch.Generator().manual_seed(0)
    code = torch.randint(0, 16, [1000], generator=g)
    mask = torch.rand([1000], generator=g) < 0.8
    seen = []
    for c, index in groups(code, mask):
        ref = ((code == c) & mask).nonzero(as_tuple=True)[0]
        assert torch.equal(index, ref)
        seen.append(c)
    assert seen == sorted(set(code[mask].tolist()))


def test_groups_empty():
    code = torch.zeros([5], dtype=torch.long)
    assert list(groups(code, code > 0)) == []


def test_chunks():
    assert list(chunks(5)) == [slice(i, i + 1) for i in range(5)]
    assert list(chunks(5, 2)) == [slice(0, 2), slice(2, 4), slice(4, 5)]
    assert list(chunks(0)) == []
    with pytest.raises(ValueError):
        list(chunks(5, -1))


def test_sampled_shape():
    assert sampled_shape([5, 4, 3], [10, 4, 7], [2, 2, 3]) == [5, 2, 2]


def test_unravel():
    index = torch.as_tensor([0, 5, 23])
    i, j, k = unravel(index, [2, 3, 4])
    assert i.tolist() == [0, 0, 1]
    assert j.tolist() == [0, 1, 2]
    assert k.tolist() == [0, 1, 3]
