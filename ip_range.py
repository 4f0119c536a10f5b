#!/usr/bin/env python3

# A set of CIDR ranges for one address family.  Ranges can be added in any
# order, then the set is simplified to a canonical form: nothing overlaps,
# and any two neighbors that make up a larger range are replaced by that
# larger range.  The canonical form is what gets turned into a trie.

from netaddr import IPAddress, IPNetwork, AddrFormatError
from ip_trie import TrieNode, walk_terminals
import re

WIDTHS = {4: 32, 6: 128}

class InputParseError(Exception):
    pass

def parse_cidr(text, version):
    # Turn a string into a CIDR for the given family, a bare address is
    # treated as a single host.  The prefix length has to be plain digits,
    # netaddr would also take a netmask or stray spaces
    text = text.strip()
    if "/" in text and not re.fullmatch(r"[0-9]+", text.rsplit("/", 1)[1]):
        raise InputParseError(f"Invalid prefix length in CIDR '{text}'")
    try:
        cidr = IPNetwork(text)
    except (AddrFormatError, ValueError, TypeError) as e:
        raise InputParseError(f"Invalid CIDR '{text}': {e}")
    if cidr.version != version:
        raise InputParseError(f"Expected an IPv{version} CIDR, got '{text}'")
    return cidr

def canonical(prefixes, width):
    # Return the simplified version of a collection of (value, prefixlen)
    # pairs, where value is the network address as an integer

    # First pass: sorted by the start of each range, with wider ranges first
    # for the same start, anything that starts before the end of the last
    # range we kept is inside of it
    kept = []
    last_end = -1
    for value, length in sorted(prefixes):
        if value <= last_end:
            continue
        kept.append((value, length))
        last_end = value + (1 << (width - length)) - 1

    # Second pass: merge siblings into their parent, working from the
    # longest prefixes up so a merge can cascade all the way to the top
    by_len = [set() for _ in range(width + 1)]
    for value, length in kept:
        by_len[length].add(value)
    for length in range(width, 0, -1):
        bit = 1 << (width - length)
        for value in sorted(by_len[length]):
            if value & bit:
                # The zero side of the pair handles the merge
                continue
            if (value | bit) in by_len[length]:
                by_len[length].discard(value)
                by_len[length].discard(value | bit)
                by_len[length - 1].add(value)

    return {(value, length) for length, values in enumerate(by_len) for value in values}

class IpRange:
    def __init__(self, version=4, prefixes=None):
        if version not in WIDTHS:
            raise ValueError(f"Invalid IP version: {version}")
        self.version = version
        self.width = WIDTHS[version]
        self.prefixes = set()
        for prefix in prefixes or []:
            self.add(prefix)

    def add(self, prefix):
        # Add a single prefix, either a string or an IPNetwork.  Nothing is
        # merged until simplify is called
        if isinstance(prefix, IPNetwork):
            if prefix.version != self.version:
                raise InputParseError(f"Expected an IPv{self.version} CIDR, got '{prefix}'")
        else:
            prefix = parse_cidr(prefix, self.version)
        # The first address drops any host bits past the prefix length
        self.prefixes.add((prefix.first, prefix.prefixlen))

    def simplify(self):
        self.prefixes = canonical(self.prefixes, self.width)
        return self

    def copy(self):
        ret = IpRange(self.version)
        ret.prefixes = set(self.prefixes)
        return ret

    def bits(self, value, length):
        # The top 'length' bits of value, most significant first
        return [(value >> (self.width - 1 - i)) & 1 for i in range(length)]

    def to_trie(self):
        # Build a trie out of the canonical ranges.  Each range walks down from
        # the root, creating nodes as it goes, and the node for the range
        # itself is made terminal
        self.simplify()
        if len(self.prefixes) == 0:
            raise ValueError(f"Can not build a trie from an empty IPv{self.version} range")

        root = TrieNode()
        for value, length in sorted(self.prefixes):
            node = root
            for bit in self.bits(value, length):
                node = node.child(bit)
            node.prune()
        return root

    @classmethod
    def from_trie(cls, root, version):
        # Turn every terminal node of a trie back into a range.  The result
        # isn't simplified
        ret = cls(version)
        for path in walk_terminals(root):
            value = int(path, 2) << (ret.width - len(path)) if len(path) else 0
            ret.prefixes.add((value, len(path)))
        return ret

    def networks(self):
        # The ranges as sorted IPNetwork objects
        return [
            IPNetwork(f"{IPAddress(value, self.version)}/{length}")
            for value, length in sorted(self.prefixes)
        ]

    def __iter__(self):
        return iter(self.networks())

    def __len__(self):
        return len(self.prefixes)

    def __eq__(self, other):
        # Two ranges are the same if they cover the same addresses
        if not isinstance(other, IpRange):
            return NotImplemented
        if self.version != other.version:
            return False
        return canonical(self.prefixes, self.width) == canonical(other.prefixes, other.width)

    __hash__ = None

    def __repr__(self):
        return f"IpRange({self.version}, [{', '.join(str(x) for x in self.networks())}])"

if __name__ == '__main__':
    print("This module is not meant to be run directly")
