"""Operators for generic resources, API rules and event subscriptions."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from fnops.client import Client, PostStatusEntry, Unstructured
from fnops.operator import (
    ApplyOptions,
    DeleteOptions,
    OperationError,
    Operator,
    Predicate,
    apply_object,
    delete_object,
    fire_callbacks,
    is_owner_reference,
    wait_for_object,
    wipe_removed,
)


@dataclass(frozen=True)
class GroupVersionResource:
    """Identifies a resource type served by the cluster."""

    group: str
    version: str
    resource: str


GVR_FUNCTION = GroupVersionResource("serverless.kyma-project.io", "v1alpha1", "functions")
GVR_GIT_REPOSITORY = GroupVersionResource("serverless.kyma-project.io", "v1alpha1", "gitrepositories")
GVR_SUBSCRIPTION = GroupVersionResource("eventing.kyma-project.io", "v1alpha1", "subscriptions")
GVR_API_RULE = GroupVersionResource("gateway.kyma-project.io", "v1alpha1", "apirules")


def _apply_one(
    client: Client, item: Unstructured, options: ApplyOptions
) -> tuple[Unstructured | None, PostStatusEntry, BaseException | None]:
    try:
        applied, entry = apply_object(client, item, options.dry_run)
    except OperationError as exc:
        return None, exc.entry, exc
    if options.wait_for_apply:
        try:
            wait_for_object(client, applied)
        except Exception as exc:
            return applied, entry, exc
    return applied, entry, None


def _apply_items(client: Client, items: Iterable[Unstructured], options: ApplyOptions) -> None:
    for item in items:
        item.owner_references = options.owner_references
        fire_callbacks(item, None, options.callbacks.pre)
        applied, entry, error = _apply_one(client, item, options)
        fire_callbacks(entry, error, options.callbacks.post)
        if applied is not None:
            item.object = applied.object


def _delete_items(client: Client, items: Iterable[Unstructured], options: DeleteOptions) -> None:
    for item in items:
        fire_callbacks(item, None, options.callbacks.pre)
        error: BaseException | None = None
        try:
            entry = delete_object(client, item, options)
        except OperationError as exc:
            entry, error = exc.entry, exc
        fire_callbacks(entry, error, options.callbacks.post)


class GenericOperator(Operator):
    """Applies and deletes a list of objects of one kind."""

    def __init__(self, client: Client, *items: Unstructured) -> None:
        self.client = client
        # Share each object's content with the caller, but keep our own wrappers.
        self.items = [Unstructured(item.object) for item in items]

    def apply(self, options: ApplyOptions) -> None:
        _apply_items(self.client, self.items, options)

    def delete(self, options: DeleteOptions) -> None:
        _delete_items(self.client, self.items, options)


class APIRuleOperator(Operator):
    """Applies API rules of a function and removes the ones no longer declared."""

    def __init__(self, client: Client, fn_name: str, *items: Unstructured) -> None:
        self.fn_name = fn_name
        self._generic = GenericOperator(client, *items)

    @property
    def items(self) -> list[Unstructured]:
        return self._generic.items

    def apply(self, options: ApplyOptions) -> None:
        predicate = build_match_removed_apirule_predicate(self.fn_name, self._generic.items)
        wipe_removed(self._generic.client, predicate, options)
        self._generic.apply(options)

    def delete(self, options: DeleteOptions) -> None:
        self._generic.delete(options)


class SubscriptionOperator(Operator):
    """Applies event subscriptions of a function and removes the ones no longer declared."""

    def __init__(self, client: Client, fn_name: str, fn_namespace: str, *items: Unstructured) -> None:
        self.client = client
        self.fn_name = fn_name
        self.fn_namespace = fn_namespace
        self.items = [Unstructured(item.object) for item in items]

    def apply(self, options: ApplyOptions) -> None:
        predicate = build_match_removed_subscriptions_predicate(
            self.fn_name, self.fn_namespace, self.items
        )
        apply_subscriptions(self.client, predicate, self.items, options)

    def delete(self, options: DeleteOptions) -> None:
        delete_subscriptions(self.client, self.items, options)


def _nested_str(obj: Mapping[str, Any], *path: str) -> str:
    node: Any = obj
    for depth, key in enumerate(path):
        if node is None:
            return ""
        if not isinstance(node, Mapping):
            raise TypeError(f"{'.'.join(path[:depth])} is not an object")
        node = node.get(key)
    if node is None:
        return ""
    if not isinstance(node, str):
        raise TypeError(f"{'.'.join(path)} is not a string")
    return node


def _owned_by_function(obj: dict[str, Any], fn_name: str) -> bool:
    refs = Unstructured(obj).owner_references
    return not refs or is_owner_reference(refs, fn_name)


def build_match_removed_apirule_predicate(fn_name: str, items: Iterable[Unstructured]) -> Predicate:
    """Match API rules of the function that are owned by it and absent from items."""
    declared = list(items)

    def predicate(obj: dict[str, Any]) -> bool:
        is_reference = _nested_str(obj, "spec", "service", "name") == fn_name
        if not is_reference or not _owned_by_function(obj, fn_name):
            return False
        return not contains(declared, Unstructured(obj).name)

    return predicate


def build_match_removed_subscriptions_predicate(
    fn_name: str, fn_namespace: str, items: Iterable[Unstructured]
) -> Predicate:
    """Match subscriptions sinking into the function that are owned by it and absent from items."""
    declared = list(items)
    sink = f"http://{fn_name}.{fn_namespace}.svc.cluster.local"

    def predicate(obj: dict[str, Any]) -> bool:
        is_reference = _nested_str(obj, "spec", "sink") == sink
        if not is_reference or not _owned_by_function(obj, fn_name):
            return False
        return not contains(declared, Unstructured(obj).name)

    return predicate


def apply_subscriptions(
    client: Client, predicate: Predicate, items: Iterable[Unstructured], options: ApplyOptions
) -> None:
    """Delete subscriptions the predicate matches, then apply every item."""
    wipe_removed(client, predicate, options)
    _apply_items(client, items, options)


def delete_subscriptions(client: Client, items: Iterable[Unstructured], options: DeleteOptions) -> None:
    """Delete every item, firing callbacks around each."""
    _delete_items(client, items, options)


def contains(items: Iterable[Unstructured] | None, name: str) -> bool:
    """Whether any of the objects has the given name."""
    return any(item.name == name for item in items or ())


def merge_map(left: dict[str, str] | None, right: dict[str, str] | None) -> dict[str, str] | None:
    """Copy right into left and return left; return right when left is None."""
    if left is None:
        return right
    left.update(right or {})
    return left