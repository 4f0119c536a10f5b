#!/usr/bin/env python3

# A simple binary trie keyed by address bits.  Each node can point to the
# node for the '0' bit and the node for the '1' bit.  A node without any
# children is terminal, meaning every address below it is in the range.
#
# Tries for IPv6 can be 128 levels deep, so everything here walks the tree
# with an explicit stack instead of recursion.

class TrieNode:
    __slots__ = ('children',)
    def __init__(self, zero=None, one=None):
        self.children = [zero, one]

    @property
    def zero(self):
        return self.children[0]

    @property
    def one(self):
        return self.children[1]

    def is_terminal(self):
        return self.children[0] is None and self.children[1] is None

    def child(self, bit):
        # Return the child for a given bit, creating it if needed
        if self.children[bit] is None:
            self.children[bit] = TrieNode()
        return self.children[bit]

    def prune(self):
        # Drop everything below this node, making it terminal
        self.children = [None, None]

def enum_nodes(root):
    # Simple helper to return all nodes under a given node, depth first,
    # zero bit before one bit
    todo = [root]
    while len(todo):
        node = todo.pop()
        yield node
        for child in reversed(node.children):
            if child is not None:
                todo.append(child)

def count_nodes(root):
    return sum(1 for _ in enum_nodes(root))

def depth(root):
    # The longest path from the root to any node
    ret = 0
    todo = [(root, 0)]
    while len(todo):
        node, level = todo.pop()
        ret = max(ret, level)
        for child in node.children:
            if child is not None:
                todo.append((child, level + 1))
    return ret

def walk_terminals(root):
    # Yield the bit path, as a string of '0' and '1', for every terminal
    # node.  The length of the path is the prefix length.
    todo = [(root, "")]
    while len(todo):
        node, path = todo.pop()
        if node.is_terminal():
            yield path
            continue
        for bit in (1, 0):
            if node.children[bit] is not None:
                todo.append((node.children[bit], path + str(bit)))

def same_shape(a, b):
    # Compare two tries node by node
    todo = [(a, b)]
    while len(todo):
        x, y = todo.pop()
        for bit in (0, 1):
            cx, cy = x.children[bit], y.children[bit]
            if (cx is None) != (cy is None):
                return False
            if cx is not None:
                todo.append((cx, cy))
    return True

if __name__ == '__main__':
    print("This module is not meant to be run directly")
