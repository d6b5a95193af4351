"""An in-memory client holding resources in a list, and YAML loading helpers."""

from __future__ import annotations

import copy
import io
import uuid
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, TextIO

import yaml

from fnops.client import (
    AlreadyExistsError,
    Client,
    NotFoundError,
    Unstructured,
)
from fnops.operator import WatchEvent


def _parse_field_selector(selector: str) -> list[tuple[str, str]]:
    """Split 'a=b,c=d' into pairs, honouring backslash escapes."""
    terms: list[tuple[str, str]] = []
    if not selector:
        return terms
    key: str | None = None
    current: list[str] = []
    chars = iter(selector)
    for char in chars:
        if char == "\\":
            current.append(next(chars, ""))
        elif char == "=" and key is None:
            key = "".join(current)
            current = []
        elif char == ",":
            if key is None:
                raise ValueError(f"invalid field selector term: {''.join(current)!r}")
            terms.append((key, "".join(current)))
            key, current = None, []
        else:
            current.append(char)
    if key is None:
        raise ValueError(f"invalid field selector term: {''.join(current)!r}")
    terms.append((key, "".join(current)))
    return terms


def _field_value(obj: dict[str, Any], path: str) -> str:
    node: Any = obj
    for key in path.split("."):
        if not isinstance(node, dict):
            return ""
        node = node.get(key)
    return "" if node is None else str(node)


@dataclass
class MapClient(Client):
    """Keeps objects in memory; sees only those matching its namespace, kind and API version."""

    data: list[Unstructured] = field(default_factory=list)
    namespace: str = ""
    api_version: str = ""
    kind: str = ""
    resource: str = ""
    group: str = ""

    @property
    def _group_resource(self) -> str:
        return f"{self.resource}.{self.group}" if self.group else self.resource

    def _in_scope(self, item: Unstructured) -> bool:
        return (
            item.namespace == self.namespace
            and item.kind == self.kind
            and item.api_version == self.api_version
        )

    def _index_of(self, name: str) -> int:
        for index, item in enumerate(self.data):
            if self._in_scope(item) and item.name == name:
                return index
        raise NotFoundError(name, self._group_resource)

    def create(self, obj: Unstructured, dry_run: Sequence[str] | None = None) -> Unstructured:
        try:
            self.get(obj.name)
        except NotFoundError:
            pass
        else:
            raise AlreadyExistsError(obj.name, self._group_resource)
        stored = obj.deep_copy()
        stored.uid = str(uuid.uuid4())
        if not dry_run:
            self.data.append(stored)
        return stored.deep_copy()

    def update(self, obj: Unstructured, dry_run: Sequence[str] | None = None) -> Unstructured:
        index = self._index_of(obj.name)
        stored = obj.deep_copy()
        if not stored.uid and self.data[index].uid:
            stored.uid = self.data[index].uid
        if not dry_run:
            self.data[index] = stored
        return stored.deep_copy()

    def update_status(self, obj: Unstructured) -> Unstructured:
        stored = self.data[self._index_of(obj.name)]
        if "status" in obj.object:
            status = obj.object["status"]
            if not isinstance(status, dict):
                raise TypeError(f"status of {obj.name!r} is not an object")
            stored.object["status"] = copy.deepcopy(status)
        return stored.deep_copy()

    def delete(
        self,
        name: str,
        dry_run: Sequence[str] | None = None,
        propagation_policy: str | None = None,
    ) -> None:
        index = self._index_of(name)
        if not dry_run:
            del self.data[index]

    def delete_collection(self, dry_run: Sequence[str] | None = None) -> None:
        if not dry_run:
            self.data = [item for item in self.data if not self._in_scope(item)]

    def get(self, name: str) -> Unstructured:
        return self.data[self._index_of(name)].deep_copy()

    def list(self) -> list[Unstructured]:
        return [item.deep_copy() for item in self.data if self._in_scope(item)]

    def watch(
        self, kind: str = "", api_version: str = "", field_selector: str = ""
    ) -> Iterator[WatchEvent]:
        """Report every matching object present now as added, then end."""
        terms = _parse_field_selector(field_selector)
        matching = [
            item.deep_copy()
            for item in self.data
            if self._in_scope(item)
            and (not kind or item.kind == kind)
            and (not api_version or item.api_version == api_version)
            and all(_field_value(item.object, key) == value for key, value in terms)
        ]
        return (WatchEvent(WatchEvent.ADDED, item) for item in matching)


def new_sample(name: str, namespace: str) -> Unstructured:
    """A minimal object of the Sample kind."""
    return Unstructured(
        {
            "apiVersion": "test.me.plz/v1alpha1",
            "kind": "Sample",
            "metadata": {"name": name, "namespace": namespace},
        }
    )


def load(stream: TextIO) -> list[Unstructured]:
    """Read every YAML document in the stream as an object; empty documents are skipped."""
    objects = []
    for document in yaml.safe_load_all(stream):
        if document is None:
            continue
        if not isinstance(document, dict):
            raise TypeError(f"document is not a mapping: {document!r}")
        objects.append(Unstructured(document))
    return objects


def from_string(text: str) -> list[Unstructured]:
    """Read every YAML document in the text as an object."""
    return load(io.StringIO(text))