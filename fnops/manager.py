"""Applying parent operators and their children, with owner references and purge on error."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from fnops.client import OwnerReference, PostStatusEntry, StatusType
from fnops.operator import (
    DRY_RUN_ALL,
    ApplyOptions,
    Callbacks,
    DeleteOptions,
    DeletionPropagation,
    Operator,
)

_FAILED_STATUSES = (StatusType.APPLY_FAILED, StatusType.DELETE_FAILED)


class OnError(IntEnum):
    """What the manager does when applying fails."""

    NOTHING = 0
    PURGE = 1


@dataclass
class ManagerOptions:
    """Settings for one manager run."""

    callbacks: Callbacks = field(default_factory=Callbacks)
    on_error: OnError = OnError.NOTHING
    dry_run: bool = False
    set_owner_references: bool = False
    wait_for_apply: bool = False


@dataclass
class Parent:
    """An operator and the operators of objects it owns."""

    object: Operator | None = None
    children: list[Operator | None] = field(default_factory=list)


def dry_run_flags(dry_run: bool) -> list[str]:
    """The dry-run stages to pass to a client."""
    return [DRY_RUN_ALL] if dry_run else []


@dataclass
class Manager:
    """Applies parents, then their children, in the order they were added."""

    operators: list[Parent] = field(default_factory=list)

    def add_parent(self, obj: Operator | None, children: list[Operator | None] | None) -> None:
        self.operators.append(Parent(obj, list(children) if children is not None else []))

    def do(self, options: ManagerOptions) -> None:
        """Apply every operator; on failure purge parents if asked to, then re-raise."""
        try:
            self._manage_operators(options)
        except Exception:
            if options.on_error == OnError.PURGE:
                self._purge_parents(options)
            raise

    def _manage_operators(self, options: ManagerOptions) -> None:
        for parent in self.operators:
            references = self._use_operator(parent.object, options, None)
            for child in parent.children:
                self._use_operator(child, options, references)

    def _use_operator(
        self,
        operator: Operator | None,
        options: ManagerOptions,
        references: list[OwnerReference] | None,
    ) -> list[OwnerReference]:
        new_references: list[OwnerReference] = []
        if operator is None:
            return new_references
        callbacks = options.callbacks
        if options.set_owner_references:
            callbacks = self.owner_reference_callback(options.callbacks, new_references)
        operator.apply(
            ApplyOptions(
                callbacks=callbacks,
                dry_run=dry_run_flags(options.dry_run),
                wait_for_apply=options.wait_for_apply,
                owner_references=references,
            )
        )
        return new_references

    def _purge_parents(self, options: ManagerOptions) -> None:
        delete_options = DeleteOptions(
            callbacks=options.callbacks,
            dry_run=dry_run_flags(options.dry_run),
            deletion_propagation=DeletionPropagation.FOREGROUND,
        )
        for parent in self.operators:
            if parent.object is None:
                continue
            with contextlib.suppress(Exception):
                parent.object.delete(delete_options)

    def owner_reference_callback(
        self, callbacks: Callbacks, refs: list[OwnerReference] | None
    ) -> Callbacks:
        """Return callbacks extended with one that records applied objects in refs."""
        if refs is None:
            return callbacks

        def record_owner(value: Any, error: BaseException | None) -> None:
            if not isinstance(value, PostStatusEntry):
                raise TypeError("can't parse value to a status entry")
            if error is not None:
                raise error
            if value.status_type not in _FAILED_STATUSES:
                refs.append(value.to_owner_reference())

        return Callbacks(pre=list(callbacks.pre), post=[*callbacks.post, record_owner])