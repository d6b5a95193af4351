"""Applies a parent object and its children to an in-memory client and prints the result."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

import yaml

from fnops.manager import Manager, ManagerOptions
from fnops.memclient import MapClient, new_sample
from fnops.operators import GenericOperator


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="fnops",
        description="Apply a parent sample with children and print the stored objects.",
    )
    parser.parse_args(argv)

    client = MapClient(
        api_version="test.me.plz/v1alpha1",
        kind="Sample",
        group="test.me.pl",
        resource="samples",
    )

    parent = new_sample("parent", "test-ns")
    child1 = new_sample("child1", "test-ns")
    child2 = new_sample("child2", "test-ns")
    sibling = new_sample("sibling", "test-ns")

    manager = Manager()
    manager.add_parent(
        GenericOperator(client, parent),
        [GenericOperator(client, child1, child2), GenericOperator(client, sibling)],
    )

    try:
        manager.do(ManagerOptions(set_owner_references=True))
    except Exception as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    for item in client.data:
        sys.stdout.write(yaml.safe_dump(item.object, default_flow_style=False, sort_keys=True))
        print("---")
    return 0


if __name__ == "__main__":
    sys.exit(main())