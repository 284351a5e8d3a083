from __future__ import annotations

import pytest

from ledgerhub.core.errors import InvalidRequest
from ledgerhub.services.issuance import asset_id_for, canonical_json
from ledgerhub.services.keys import generate_key, validate_public_key
from ledgerhub.tests.utils.fakes import FakeKey, FakeNode


def _node(*public_keys: str, sigs_required: int = 1) -> FakeNode:
    return FakeNode(
        id="in_fixed",
        project_id="p1",
        label="node",
        sigs_required=sigs_required,
        keys=[FakeKey(source="external", public_key=key) for key in public_keys],
    )


def test_generated_keys_are_raw_ed25519_hex() -> None:
    generated = generate_key()
    assert len(bytes.fromhex(generated.public_key)) == 32
    assert len(bytes.fromhex(generated.private_key)) == 32
    assert validate_public_key(generated.public_key) == generated.public_key


def test_external_keys_are_normalized_to_lowercase() -> None:
    public_key = generate_key().public_key
    assert validate_public_key(public_key.upper()) == public_key


@pytest.mark.parametrize("value", ["", "zz", "aa" * 31, "aa" * 33])
def test_malformed_external_keys_are_rejected(value: str) -> None:
    with pytest.raises(InvalidRequest):
        validate_public_key(value)


def test_canonical_json_is_key_order_independent() -> None:
    assert canonical_json({"b": 1, "a": [1, 2]}) == canonical_json({"a": [1, 2], "b": 1}) == '{"a":[1,2],"b":1}'


def test_canonical_json_rejects_unserializable_values() -> None:
    with pytest.raises(InvalidRequest):
        canonical_json({"when": object()})


def test_asset_id_is_deterministic_over_its_inputs() -> None:
    key = generate_key().public_key
    node = _node(key)
    first = asset_id_for(node, 0, {"unit": "oz"})
    assert first == asset_id_for(_node(key), 0, {"unit": "oz"})
    assert len(first) == 64
    assert first != asset_id_for(node, 1, {"unit": "oz"})
    assert first != asset_id_for(node, 0, {"unit": "g"})
    assert first != asset_id_for(_node(key, sigs_required=2), 0, {"unit": "oz"})
    assert first != asset_id_for(_node(generate_key().public_key), 0, {"unit": "oz"})
