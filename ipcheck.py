#!/usr/bin/env python3

# Generate a stand alone TypeScript ipCheck() function from two lists of
# CIDR ranges, one for IPv4 and one for IPv6.
#
# Each list is simplified, turned into a binary trie, and the trie is
# flattened into an array of child indexes that's embedded in the output.
# See flatten.py for the layout of the array.

from jinja2 import Template
from netaddr import IPAddress, AddrFormatError
from delaymsg import DelayMsg, show
from flatten import trie_to_nodes, nodes_to_trie, check_nodes, lookup_ip
from ip_range import IpRange, InputParseError
from ip_trie import count_nodes
import csv
import json
import os
import sys
import tempfile

BASE_DIR = os.path.split(__file__)[0]
TEMPLATE = os.path.join(BASE_DIR, "ipcheck.ts")

def load_csv(path, version):
    # Load a CSV file, the first field of each row is a CIDR, and the first
    # row is a header
    ret = IpRange(version)
    records = 0
    with open(path, "rt", newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        try:
            header = next(reader, None)
            if header is None:
                raise InputParseError(f"{path}: File is empty")
            with DelayMsg() as msg:
                for row in reader:
                    if len(row) == 0:
                        continue
                    if len(row) != len(header):
                        raise InputParseError(f"{path}, line {reader.line_num}: Expected {len(header)} fields, found {len(row)}")
                    try:
                        ret.add(row[0])
                    except InputParseError as e:
                        raise InputParseError(f"{path}, line {reader.line_num}: {e}")
                    records += 1
                    msg(f"Loading {path}, on line {reader.line_num:,}...")
        except (csv.Error, UnicodeDecodeError) as e:
            raise InputParseError(f"{path}, line {reader.line_num}: {e}")

    if records == 0:
        raise InputParseError(f"{path}: No IPv{version} ranges found")

    ret.simplify()
    show(f"Loaded {records:,} records from {path}, simplified to {len(ret):,} IPv{version} ranges")
    return ret

def build_nodes(ip_range):
    # Turn a range into the flat node list, and make sure it turns back into
    # the same range before it's used
    trie = ip_range.to_trie()
    total = count_nodes(trie)
    nodes = trie_to_nodes(trie)
    if len(nodes) != total * 2:
        raise Exception(f"Expected {total} nodes, found {len(nodes) // 2}")
    verify_nodes(ip_range, nodes)
    show(f"IPv{ip_range.version} trie has {total:,} nodes")
    return nodes

def verify_nodes(ip_range, nodes):
    check_nodes(nodes)
    rebuilt = IpRange.from_trie(nodes_to_trie(nodes), ip_range.version).simplify()
    if rebuilt != ip_range:
        raise Exception(f"IPv{ip_range.version} node list does not match the source ranges")

def render(nodes_v4, nodes_v6, template=TEMPLATE):
    with open(template, "rt", encoding="utf-8") as f:
        tt = Template(f.read(), keep_trailing_newline=True)
    return tt.render(
        filterV4="[" + ",".join(str(x) for x in nodes_v4) + "]",
        filterV6="[" + ",".join(str(x) for x in nodes_v6) + "]",
    )

def write_output(path, code):
    # Write to a uniquely named temp file next to the target first, so a
    # failure never leaves a partial file behind
    f = tempfile.NamedTemporaryFile(
        "wt", dir=os.path.dirname(path) or ".", prefix=".ipcheck-", suffix=".tmp",
        delete=False, newline="", encoding="utf-8",
    )
    try:
        with f:
            f.write(code)
        # Temp files are created as owner only, use normal permissions for the output
        os.chmod(f.name, 0o644)
        os.replace(f.name, path)
    except OSError:
        if os.path.isfile(f.name):
            os.unlink(f.name)
        raise

def load_both(ipv4_path, ipv6_path):
    nodes_v4 = build_nodes(load_csv(ipv4_path, 4))
    nodes_v6 = build_nodes(load_csv(ipv6_path, 6))
    return nodes_v4, nodes_v6

def build(ipv4_path, ipv6_path, output_path):
    show("Building filters...")
    nodes_v4, nodes_v6 = load_both(ipv4_path, ipv6_path)
    show(f"Writing {output_path}")
    write_output(output_path, render(nodes_v4, nodes_v6))
    show("All done")

def lookup(ipv4_path, ipv6_path, ips):
    nodes_v4, nodes_v6 = load_both(ipv4_path, ipv6_path)
    for ip in ips:
        try:
            addr = IPAddress(ip)
        except (AddrFormatError, ValueError) as e:
            print(json.dumps({"ip": ip, "ERROR": str(e)}))
            continue
        matches, cidr = lookup_ip(nodes_v4 if addr.version == 4 else nodes_v6, addr, include_cidr=True)
        row = {"ip": ip, "matches": matches}
        if cidr is not None:
            row["cidr"] = cidr
        print(json.dumps(row))

def usage():
    print("Usage:")
    print("  [build] <ipv4_csv> <ipv6_csv> <output_filename> - Generate the ipCheck() source file")
    print("  lookup <ipv4_csv> <ipv6_csv> <ip> [<ip> ...]     - Check IPs against the ranges")

def main(args=None):
    args = sys.argv[1:] if args is None else args
    if len(args) == 0 or args[0] in {"--help", "-h", "/?", "/h"}:
        usage()
        return 1

    try:
        if args[0] == "lookup":
            if len(args) < 4:
                usage()
                return 1
            lookup(args[1], args[2], args[3:])
        elif args[0] == "build":
            if len(args) != 4:
                usage()
                return 1
            build(*args[1:])
        elif len(args) == 3:
            build(*args)
        else:
            usage()
            return 1
    except (InputParseError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
