"""Tests for cardsign.core.chain: leaf-first chain ordering."""

from __future__ import annotations

import itertools

from conftest import issue_certificate, new_key, to_asn1

from cardsign.core.chain import build_path, contains_certificate, is_self_issued, order_chain


def _serials(chain):
    return [c.serial_number for c in chain]


def test_all_permutations_order_leaf_first(pki):
    expected = _serials(pki.chain)
    for perm in itertools.permutations(pki.chain):
        assert _serials(order_chain(perm)) == expected


def test_issuer_links_hold(pki):
    ordered = order_chain([pki.root, pki.leaf, pki.intermediate])
    for child, parent in itertools.pairwise(ordered):
        assert child.issuer == parent.subject


def test_no_leaf_returns_input_unchanged(pki):
    certs = [pki.root, pki.intermediate]
    result = order_chain(certs)
    assert _serials(result) == _serials(certs)
    assert result is not certs


def test_missing_intermediate_stops_at_leaf(pki):
    # Root cannot be linked without the intermediate and is dropped
    assert _serials(order_chain([pki.root, pki.leaf])) == [pki.leaf.serial_number]


def test_single_leaf(pki):
    assert _serials(order_chain([pki.leaf])) == [pki.leaf.serial_number]


def test_empty_input():
    assert order_chain([]) == []


def test_multiple_leaves_pick_is_order_independent(pki):
    other = pki.issue_leaf("Second Signer")
    certs = [pki.leaf, other, pki.intermediate, pki.root]
    results = {tuple(_serials(order_chain(p))) for p in itertools.permutations(certs)}
    assert len(results) == 1
    (result,) = results
    assert len(result) == 3


def test_build_path_ignores_unrelated(pki):
    stranger = pki.issue_leaf("Stranger")
    path = build_path(pki.leaf, [stranger, pki.root, pki.intermediate])
    assert _serials(path) == _serials(pki.chain)


def _rekeyed_root(pki):
    """Self-signed root sharing the test root's name but not its key."""
    name = pki.root_crypto.subject
    key = new_key()
    return to_asn1(issue_certificate(name, key, name, key, ca=True))


def test_build_path_stops_at_self_issued(pki):
    rekeyed = _rekeyed_root(pki)
    path = build_path(pki.leaf, [pki.intermediate, pki.root, rekeyed])
    assert _serials(path) == _serials(pki.chain)


def test_order_chain_walks_past_self_issued(pki):
    rekeyed = _rekeyed_root(pki)
    ordered = order_chain([pki.root, rekeyed, pki.leaf, pki.intermediate])
    assert _serials(ordered) == [*_serials(pki.chain), rekeyed.serial_number]


def test_contains_certificate_by_encoding(pki):
    assert contains_certificate(pki.leaf, pki.chain)
    assert not contains_certificate(pki.leaf, [pki.root])


def test_is_self_issued(pki):
    assert is_self_issued(pki.root)
    assert not is_self_issued(pki.intermediate)
