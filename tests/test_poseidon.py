import pytest

from zk.field import R
from zk.poseidon import MDS, ROUND_CONSTANTS, ROUNDS, WIDTH, permute, sponge, sponge_gadget
from zk.r1cs import ConstraintSystem, WitnessError


def test_parameters_live_in_the_field():
    assert len(ROUND_CONSTANTS) == ROUNDS
    assert all(0 <= c < R for row in ROUND_CONSTANTS for c in row)
    for i in range(WIDTH):
        for j in range(WIDTH):
            assert MDS[i][j] * (i + WIDTH + j) % R == 1


def test_permutation_is_deterministic_and_mixes():
    state = permute([1, 2, 3, 4])
    assert state == permute([1, 2, 3, 4])
    assert all(0 <= s < R for s in state)
    assert all(a != b for a, b in zip(state, permute([1, 2, 3, 5])))


def test_sponge_is_sensitive_to_every_word():
    digest = sponge([10, 20, 30])
    assert sponge([10, 20, 31]) != digest
    assert sponge([11, 20, 30]) != digest
    # the capacity lane carries the length
    assert sponge([10, 20, 30, 0]) != digest


def test_sponge_absorbs_long_messages():
    assert sponge(list(range(7))) != sponge(list(range(6)))


@pytest.mark.parametrize("words", [[], ()])
def test_sponge_rejects_empty_message(words):
    with pytest.raises(ValueError):
        sponge(words)


def test_gadget_matches_native_hash():
    cs = ConstraintSystem("hash")
    words = [cs.private(f"w{i}", v) for i, v in enumerate([7, R - 1, 123456789])]
    h0, h1 = sponge_gadget(cs, words)
    cs.check()
    assert (cs.value(h0), cs.value(h1)) == sponge([7, R - 1, 123456789])
    # three constraints per S-box: 8 full rounds of 4, 56 partial rounds of 1
    assert len(cs.constraints) == 3 * (8 * 4 + 56)


def test_gadget_rejects_a_tampered_sbox():
    cs = ConstraintSystem("hash")
    word = cs.private("w", 5)
    sponge_gadget(cs, [word])
    cs.values[-1] = (cs.values[-1] + 1) % R
    with pytest.raises(WitnessError):
        cs.check()
