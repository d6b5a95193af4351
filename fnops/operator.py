"""Applying and deleting resources through a client, with pre and post callbacks."""

from __future__ import annotations

import copy
import random
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from fnops.client import (
    Client,
    ConflictError,
    NotFoundError,
    OwnerReference,
    PostStatusEntry,
    Unstructured,
)

Callback = Callable[[Any, "BaseException | None"], None]
"""Called with a value and the error so far; raising stops the operation."""

Predicate = Callable[[dict], bool]

DRY_RUN_ALL = "All"

_RETRY_STEPS = 5
_RETRY_DELAY = 0.01
_RETRY_JITTER = 0.1


class DeletionPropagation(str, Enum):
    """How dependents of a deleted object are handled."""

    ORPHAN = "Orphan"
    BACKGROUND = "Background"
    FOREGROUND = "Foreground"


@dataclass
class Callbacks:
    """Functions fired before and after each object is processed."""

    pre: list[Callback] = field(default_factory=list)
    post: list[Callback] = field(default_factory=list)


@dataclass
class Options:
    """Settings shared by apply and delete operations."""

    callbacks: Callbacks = field(default_factory=Callbacks)
    dry_run: list[str] = field(default_factory=list)
    wait_for_apply: bool = False


@dataclass
class ApplyOptions(Options):
    """Settings for applying objects."""

    owner_references: list[OwnerReference] | None = None


@dataclass
class DeleteOptions(Options):
    """Settings for deleting objects."""

    deletion_propagation: DeletionPropagation | None = None


@dataclass(frozen=True)
class WatchEvent:
    """A change reported by a client's watch."""

    ADDED: ClassVar[str] = "ADDED"
    MODIFIED: ClassVar[str] = "MODIFIED"
    DELETED: ClassVar[str] = "DELETED"
    BOOKMARK: ClassVar[str] = "BOOKMARK"
    ERROR: ClassVar[str] = "ERROR"

    type: str
    object: Unstructured | None = None


class OperationError(Exception):
    """Applying or deleting an object failed; the cause is chained."""

    def __init__(self, entry: PostStatusEntry, cause: BaseException) -> None:
        super().__init__(f"{entry.status_type} {entry.object.name!r}: {cause}")
        self.entry = entry


class Operator(ABC):
    """Applies and deletes a set of objects."""

    @abstractmethod
    def apply(self, options: ApplyOptions) -> None:
        """Create or update the objects."""

    @abstractmethod
    def delete(self, options: DeleteOptions) -> None:
        """Delete the objects."""


def apply_object(
    client: Client, obj: Unstructured, dry_run: Sequence[str] | None = None
) -> tuple[Unstructured, PostStatusEntry]:
    """Create the object, update it if it differs, or skip it if up to date.

    Returns the stored object and a status entry; raises OperationError on failure.
    """
    try:
        response: Unstructured | None = client.get(obj.name)
    except NotFoundError:
        response = None
    except Exception as exc:
        raise OperationError(PostStatusEntry.apply_failed(obj), exc) from exc

    if response is not None:
        if configuration_objects_are_equivalent(obj, response):
            return response, PostStatusEntry.skipped(response)
        merged = update_configuration_object(response, obj)
        try:
            updated = _update_retrying_on_conflict(client, merged, dry_run)
        except Exception as exc:
            raise OperationError(PostStatusEntry.apply_failed(obj), exc) from exc
        return updated, PostStatusEntry.updated(updated)

    try:
        created = client.create(obj, dry_run=dry_run)
    except Exception as exc:
        raise OperationError(PostStatusEntry.apply_failed(obj), exc) from exc
    return created, PostStatusEntry.created(created)


def _update_retrying_on_conflict(
    client: Client, obj: Unstructured, dry_run: Sequence[str] | None
) -> Unstructured:
    for attempt in range(_RETRY_STEPS):
        try:
            return client.update(obj, dry_run=dry_run)
        except ConflictError:
            if attempt == _RETRY_STEPS - 1:
                raise
            time.sleep(_RETRY_DELAY * (1 + random.random() * _RETRY_JITTER))
    raise AssertionError("unreachable")


def _metadata_of(obj: Unstructured) -> dict[str, Any]:
    metadata = obj.object.get("metadata")
    if not isinstance(metadata, dict):
        raise TypeError("can't cast object for equality checking")
    return metadata


def update_configuration_object(destination: Unstructured, source: Unstructured) -> Unstructured:
    """Copy spec, labels and annotations from source into destination and return it."""
    destination.object["spec"] = copy.deepcopy(source.object.get("spec"))
    destination_metadata = _metadata_of(destination)
    source_metadata = _metadata_of(source)
    for element in ("labels", "annotations"):
        if element in source_metadata:
            destination_metadata[element] = copy.deepcopy(source_metadata[element])
        else:
            destination_metadata.pop(element, None)
    return destination


def configuration_objects_are_equivalent(first: Unstructured, second: Unstructured) -> bool:
    """Whether spec, labels and annotations of both objects are equal."""
    if first.object.get("spec") != second.object.get("spec"):
        return False
    first_metadata = _metadata_of(first)
    second_metadata = _metadata_of(second)
    return all(
        _elements_are_equal(first_metadata, second_metadata, element)
        for element in ("labels", "annotations")
    )


def _elements_are_equal(first: dict[str, Any], second: dict[str, Any], element: str) -> bool:
    first_element = first.get(element, {})
    second_element = second.get(element, {})
    if first_element is None or second_element is None:
        return first_element is None and second_element is None
    return first_element == second_element


def _escape_selector_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace(",", "\\,").replace("=", "\\=")


def _await_added(events: Iterable[Any]) -> None:
    for event in events:
        if event.type == WatchEvent.ADDED:
            return


def wait_for_object(client: Client, obj: Unstructured, timeout: float | None = None) -> None:
    """Block until the watch reports the object as added or the stream ends.

    Raises TimeoutError if that does not happen within timeout seconds.
    """
    selector = ",".join(
        f"{key}={_escape_selector_value(value)}"
        for key, value in (("metadata.name", obj.name), ("metadata.namespace", obj.namespace))
    )
    events = client.watch(kind=obj.kind, api_version=obj.api_version, field_selector=selector)
    if timeout is None:
        _await_added(events)
        return

    failures: list[Exception] = []
    finished = threading.Event()

    def consume() -> None:
        try:
            _await_added(events)
        except Exception as exc:
            failures.append(exc)
        finally:
            finished.set()

    threading.Thread(target=consume, daemon=True).start()
    if not finished.wait(timeout):
        raise TimeoutError(f"timed out waiting for {obj.kind} {obj.name!r}")
    if failures:
        raise failures[0]


def wipe_removed(client: Client, predicate: Predicate, options: Options) -> None:
    """Delete every listed object the predicate matches, firing callbacks around each."""
    for item in client.list():
        if not predicate(item.object):
            continue
        fire_callbacks(item, None, options.callbacks.pre)
        try:
            client.delete(
                item.name,
                dry_run=options.dry_run,
                propagation_policy=DeletionPropagation.BACKGROUND.value,
            )
        except Exception as exc:
            fire_callbacks(PostStatusEntry.delete_failed(item), exc, options.callbacks.post)
        fire_callbacks(PostStatusEntry.deleted(item), None, options.callbacks.post)


def delete_object(client: Client, obj: Unstructured, options: DeleteOptions) -> PostStatusEntry:
    """Delete the object; raise OperationError carrying a delete-failed entry on failure."""
    policy = options.deletion_propagation.value if options.deletion_propagation else None
    try:
        client.delete(obj.name, dry_run=options.dry_run, propagation_policy=policy)
    except Exception as exc:
        raise OperationError(PostStatusEntry.delete_failed(obj), exc) from exc
    return PostStatusEntry.deleted(obj)


def fire_callbacks(value: Any, error: BaseException | None, callbacks: Iterable[Callback]) -> None:
    """Call each callback in turn, then raise error if one was given.

    An exception raised by a callback stops the chain and propagates.
    """
    for callback in callbacks:
        callback(value, error)
    if error is not None:
        raise error


def is_owner_reference(refs: Iterable[OwnerReference], owner_name: str) -> bool:
    """Whether any reference points to the function with the given name."""
    return any(ref.kind == "Function" and ref.name == owner_name for ref in refs)