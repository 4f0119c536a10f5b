import random

import pytest
from netaddr import IPAddress, IPSet

from flatten import trie_to_nodes, nodes_to_trie, check_nodes, lookup_ip
from ip_range import IpRange
from ip_trie import TrieNode, count_nodes, depth, enum_nodes, same_shape, walk_terminals


def round_trip(ip_range):
    nodes = trie_to_nodes(ip_range.copy().to_trie())
    return IpRange.from_trie(nodes_to_trie(nodes), ip_range.version).simplify()


@pytest.mark.parametrize("version, prefixes", [
    (4, ["192.168.0.0/24", "10.0.0.0/8"]),
    (4, ["192.168.1.1/32"]),
    (4, ["192.168.0.0/16", "10.0.0.0/8", "172.16.0.0/12"]),
    (4, ["0.0.0.0/0"]),
    (6, ["2001:db8::/32", "fe80::/10"]),
    (6, ["2001:db8::1/128", "::/128", "ffff:ffff:ffff:ffff:ffff:ffff:ffff:ffff/128"]),
])
def test_round_trip(version, prefixes):
    original = IpRange(version, prefixes).simplify()
    rebuilt = round_trip(original)
    assert rebuilt == original
    assert rebuilt.prefixes == original.prefixes


def test_disjoint_ranges_all_recovered():
    rebuilt = round_trip(IpRange(4, ["192.168.0.0/16", "10.0.0.0/8", "172.16.0.0/12"]).simplify())
    assert [str(x) for x in rebuilt] == ["10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"]


@pytest.mark.parametrize("version, seed", [(4, 10), (6, 11)])
def test_random_round_trip(version, seed):
    rng = random.Random(seed)
    width = 32 if version == 4 else 128
    r = IpRange(version)
    for _ in range(500):
        length = rng.randint(1, width)
        r.add(f"{IPAddress(rng.getrandbits(width), version)}/{length}")
    r.simplify()
    assert round_trip(r) == r


def test_known_layout():
    # The '1' child of a node is numbered before the '0' child
    root = IpRange(4, ["0.0.0.0/2", "128.0.0.0/1"]).to_trie()
    assert trie_to_nodes(root) == [2, 1, 0, 0, 3, 0, 0, 0]


def test_single_child_layout():
    root = IpRange(4, ["128.0.0.0/1"]).to_trie()
    assert trie_to_nodes(root) == [0, 1, 0, 0]


def test_terminal_root():
    root = IpRange(6, ["::/0"]).to_trie()
    nodes = trie_to_nodes(root)
    assert nodes == [0, 0]
    assert nodes_to_trie(nodes).is_terminal()


@pytest.mark.parametrize("version, prefixes", [
    (4, ["192.168.1.1/32", "10.0.0.0/8", "172.16.0.0/12", "100.64.0.0/10"]),
    (6, ["2001:db8::/32", "fe80::/10", "2001:db8:1234::5/128", "::1/128"]),
])
def test_structure(version, prefixes):
    root = IpRange(version, prefixes).to_trie()
    total = count_nodes(root)
    nodes = trie_to_nodes(root)

    assert len(nodes) == total * 2
    check_nodes(nodes)

    children = [x for x in nodes if x != 0]
    # Every node except the root is somebody's child, exactly once
    assert sorted(children) == list(range(1, total))
    for index in range(total):
        for bit in (0, 1):
            child = nodes[index * 2 + bit]
            assert child == 0 or child > index


def test_unflatten_gives_same_shape():
    root = IpRange(6, ["2001:db8::/32", "fe80::/10", "::1/128"]).to_trie()
    rebuilt = nodes_to_trie(trie_to_nodes(root))
    assert same_shape(root, rebuilt)
    assert count_nodes(rebuilt) == count_nodes(root)


def test_ipv6_full_depth():
    root = IpRange(6, ["2001:db8::1/128", "2001:db8::2/128"]).to_trie()
    assert depth(root) == 128
    nodes = trie_to_nodes(root)
    rebuilt = nodes_to_trie(nodes)
    assert sorted(len(x) for x in walk_terminals(rebuilt)) == [128, 128]


def test_trie_has_no_empty_internal_nodes():
    root = IpRange(4, ["10.0.0.0/8", "10.1.0.0/16", "192.168.0.0/16"]).to_trie()
    paths = list(walk_terminals(root))
    assert sorted(paths) == sorted([format(10, "08b"), format(0xc0a8, "016b")])
    # Terminal nodes have no children, and every other node has at least one
    assert all(node.is_terminal() or any(node.children) for node in enum_nodes(root))


def test_trie_node_helpers():
    node = TrieNode()
    assert node.is_terminal()
    child = node.child(1)
    assert node.one is child
    assert node.zero is None
    assert node.child(1) is child
    node.prune()
    assert node.is_terminal()


@pytest.mark.parametrize("nodes", [
    [],
    [0],
    [0, 0, 0, 0],
    [0, 2, 0, 0],
    [1, 1, 0, 0],
    [0, 1, 0, 0, 0, 0],
    [2, 1, 0, 0, 1, 0],
])
def test_invalid_nodes(nodes):
    with pytest.raises(ValueError):
        check_nodes(nodes)
    with pytest.raises(ValueError):
        nodes_to_trie(nodes)


def test_lookup_known_layout():
    nodes = [2, 1, 0, 0, 3, 0, 0, 0]
    assert lookup_ip(nodes, "10.0.0.1") is True
    assert lookup_ip(nodes, "64.0.0.1") is False
    assert lookup_ip(nodes, "200.1.2.3", include_cidr=True) == (True, "128.0.0.0/1")
    assert lookup_ip(nodes, "10.0.0.1", include_cidr=True) == (True, "0.0.0.0/2")
    assert lookup_ip(nodes, "64.0.0.1", include_cidr=True) == (False, None)


def test_lookup_host_prefix():
    nodes = trie_to_nodes(IpRange(4, ["192.168.1.1/32"]).to_trie())
    assert lookup_ip(nodes, "192.168.1.1", include_cidr=True) == (True, "192.168.1.1/32")
    assert lookup_ip(nodes, "192.168.1.0") is False
    assert lookup_ip(nodes, "192.168.1.3") is False


def test_lookup_everything():
    nodes = trie_to_nodes(IpRange(4, ["0.0.0.0/0"]).to_trie())
    assert lookup_ip(nodes, "1.2.3.4", include_cidr=True) == (True, "0.0.0.0/0")


@pytest.mark.parametrize("version, seed", [(4, 20), (6, 21)])
def test_lookup_agrees_with_netaddr(version, seed):
    rng = random.Random(seed)
    width = 32 if version == 4 else 128
    r = IpRange(version)
    for _ in range(200):
        r.add(f"{IPAddress(rng.getrandbits(width), version)}/{rng.randint(1, 24)}")
    nodes = trie_to_nodes(r.copy().to_trie())
    expected = IPSet(r.networks())

    candidates = [IPAddress(rng.getrandbits(width), version) for _ in range(1000)]
    # Include the edges of every range
    for net in r.networks():
        candidates.append(net.network)
        candidates.append(IPAddress(net.last, version))
    for addr in candidates:
        assert lookup_ip(nodes, addr) == (addr in expected)
