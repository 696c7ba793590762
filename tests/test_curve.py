from py_ecc.optimized_bn128 import G1 as PY_G1, G2 as PY_G2, add, multiply, normalize

from zk.curve import G1, G2, ORDER, FixedBase, g1_to_py, g2_to_py


def test_scalar_multiplication_matches_py_ecc():
    for scalar in (1, 2, 7, ORDER - 1, 2**200 + 12345):
        point = G1.to_affine(G1.mul(G1.from_affine(G1.generator), scalar))
        assert normalize(g1_to_py(point)) == normalize(multiply(PY_G1, scalar))
    point = G2.to_affine(G2.mul(G2.from_affine(G2.generator), 5))
    assert normalize(g2_to_py(point)) == normalize(multiply(PY_G2, 5))


def test_group_laws():
    g = G1.from_affine(G1.generator)
    assert G1.to_affine(G1.add(g, G1.neg(g))) is None
    assert G1.to_affine(G1.add(g, g)) == G1.to_affine(G1.double(g))
    assert G1.to_affine(G1.mul(g, ORDER)) is None
    h = G2.from_affine(G2.generator)
    assert G2.to_affine(G2.add(h, G2.neg(h))) is None
    assert normalize(g2_to_py(G2.to_affine(G2.add(h, h)))) == normalize(add(PY_G2, PY_G2))


def test_fixed_base_matches_double_and_add():
    table = FixedBase(G2, G2.generator)
    for scalar in (0, 1, 16, 2**100 + 3):
        expected = G2.to_affine(G2.mul(G2.from_affine(G2.generator), scalar))
        assert table.mul_affine(scalar) == expected


def test_msm_matches_naive_sum():
    g = G1.from_affine(G1.generator)
    points = [G1.to_affine(G1.mul(g, k)) for k in range(1, 40)] + [None]
    scalars = [0, 1] + [3**k + k for k in range(2, 40)] + [5]
    naive = G1.infinity
    for point, scalar in zip(points, scalars):
        if point is not None:
            naive = G1.add(naive, G1.mul(G1.from_affine(point), scalar))
    assert G1.to_affine(G1.msm(points, scalars)) == G1.to_affine(naive)
    assert G1.to_affine(G1.msm([], [])) is None
