from types import SimpleNamespace

from logic.placement import fleet_to_mapping, place
from models import HORIZONTAL, VERTICAL, Fleet
from zk.codec import CallData

SALT = 12345


def sample_fleet():
    # (2, 3) stays empty, (0, 0) holds the destroyer
    return Fleet(ships=[
        place("carrier", (0, 5), HORIZONTAL),
        place("battleship", (6, 0), VERTICAL),
        place("cruiser", (0, 7), HORIZONTAL),
        place("submarine", (9, 7), VERTICAL),
        place("destroyer", (0, 0), HORIZONTAL),
    ])


def fleet_inputs(fleet=None, salt=SALT):
    return {**fleet_to_mapping(fleet or sample_fleet()), "salt": salt}


def fake_call(*signals):
    """Call data with dummy points; only the public signals matter."""
    return CallData.from_words(["1", "2", "3", "4", "5", "6", "7", "8", *signals])


def verifier(commitment=True, position=True):
    return SimpleNamespace(
        verify_commitment=lambda call: commitment,
        verify_position=lambda call: position,
    )
