#!/usr/bin/env python3

# Turn a trie into a flat list of numbers that can be embedded into source
# code, and back again.
#
# Each node takes two slots in the list: nodes[i * 2] is the index of the
# node for the '0' bit, and nodes[i * 2 + 1] is the index of the node for the
# '1' bit.  Node 0 is the root, and since nothing can point back to the root,
# an index of 0 means there's no child.  A node with two 0 entries is
# terminal, everything below it matches.

from netaddr import IPAddress, IPNetwork
from ip_trie import TrieNode

def trie_to_nodes(root):
    # The root always gets the first slot
    nodes = [0, 0]
    todo = [(root, 0)]

    while len(todo):
        node, index = todo.pop()
        # The '1' child is handled first so it gets the lower index.  Each child
        # has its slot reserved as soon as it's seen, so it's always after its
        # parent, and before anything below it
        for bit in (1, 0):
            child = node.children[bit]
            if child is not None:
                child_index = len(nodes) // 2
                nodes.extend([0, 0])
                todo.append((child, child_index))
                nodes[index * 2 + bit] = child_index

    return nodes

def nodes_to_trie(nodes):
    # Rebuild the trie by working backwards through the list.  Children always
    # have a higher index than their parent, so by the time we get to a node
    # everything it points to has already been built
    if len(nodes) == 0 or len(nodes) % 2 != 0:
        raise ValueError(f"Invalid node list of length {len(nodes)}")

    pending = {}
    for index in range(len(nodes) // 2 - 1, -1, -1):
        children = [None, None]
        for bit in (0, 1):
            child_index = nodes[index * 2 + bit]
            if child_index != 0:
                if child_index not in pending:
                    raise ValueError(f"Node {index} points to node {child_index}, which is missing or already used")
                children[bit] = pending.pop(child_index)
        pending[index] = TrieNode(*children)

    root = pending.pop(0)
    if len(pending):
        raise ValueError(f"{len(pending)} nodes are not reachable from the root")
    return root

def check_nodes(nodes):
    # Make sure a node list follows the rules needed to decode it: every
    # node but the root has exactly one parent, and comes after that parent
    if len(nodes) == 0 or len(nodes) % 2 != 0:
        raise ValueError(f"Invalid node list of length {len(nodes)}")
    count = len(nodes) // 2
    seen = set()
    for index in range(count):
        for bit in (0, 1):
            child_index = nodes[index * 2 + bit]
            if child_index == 0:
                continue
            if child_index <= index or child_index >= count:
                raise ValueError(f"Node {index} has an invalid child index of {child_index}")
            if child_index in seen:
                raise ValueError(f"Node {child_index} has more than one parent")
            seen.add(child_index)
    if len(seen) != count - 1:
        raise ValueError(f"{count - 1 - len(seen)} nodes are not reachable from the root")

def is_leaf(nodes, index):
    return nodes[index * 2] == 0 and nodes[index * 2 + 1] == 0

def path_to_cidr(path, version):
    # Turn a list of bits from the root into the CIDR it represents
    width = 32 if version == 4 else 128
    value = int(path.ljust(width, "0"), 2)
    return str(IPNetwork(f"{IPAddress(value, version)}/{len(path)}"))

def lookup_ip(nodes, ip, include_cidr=False):
    # Walk down a node list one bit of the address at a time, the same way
    # the generated ipCheck() does.  Returns True or False, or a tuple of
    # the match and the matching CIDR if include_cidr is set
    addr = ip if isinstance(ip, IPAddress) else IPAddress(ip)
    bits = addr.bits().replace(".", "").replace(":", "")

    index = 0
    path = ""
    matches = None
    for bit in bits:
        if is_leaf(nodes, index):
            matches = True
            break
        path += bit
        index = nodes[index * 2 + int(bit)]
        if index == 0:
            matches = False
            break

    if matches is None:
        # Used up every bit, only a match if we ended on a terminal node
        matches = is_leaf(nodes, index)

    if include_cidr:
        return matches, path_to_cidr(path, addr.version) if matches else None
    return matches

if __name__ == '__main__':
    print("This module is not meant to be run directly")
