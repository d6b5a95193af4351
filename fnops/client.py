"""Resource objects, the cluster client interface and apply/delete status entries."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


@dataclass(frozen=True)
class OwnerReference:
    """Reference from a dependent object to the object that owns it."""

    api_version: str = ""
    kind: str = ""
    name: str = ""
    uid: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OwnerReference:
        return cls(
            api_version=str(data.get("apiVersion", "")),
            kind=str(data.get("kind", "")),
            name=str(data.get("name", "")),
            uid=str(data.get("uid", "")),
        )


@dataclass
class Unstructured:
    """A resource held as a plain nested dictionary."""

    object: dict[str, Any] = field(default_factory=dict)

    def deep_copy(self) -> Unstructured:
        return Unstructured(copy.deepcopy(self.object))

    def _metadata(self, create: bool = False) -> dict[str, Any]:
        metadata = self.object.get("metadata")
        if isinstance(metadata, dict):
            return metadata
        if not create:
            return {}
        metadata = {}
        self.object["metadata"] = metadata
        return metadata

    def _get_meta(self, key: str) -> str:
        value = self._metadata().get(key)
        return value if isinstance(value, str) else ""

    def _set_meta(self, key: str, value: str) -> None:
        if value:
            self._metadata(create=True)[key] = value
        else:
            self._metadata().pop(key, None)

    def _get_top(self, key: str) -> str:
        value = self.object.get(key)
        return value if isinstance(value, str) else ""

    @property
    def name(self) -> str:
        return self._get_meta("name")

    @name.setter
    def name(self, value: str) -> None:
        self._set_meta("name", value)

    @property
    def namespace(self) -> str:
        return self._get_meta("namespace")

    @namespace.setter
    def namespace(self, value: str) -> None:
        self._set_meta("namespace", value)

    @property
    def uid(self) -> str:
        return self._get_meta("uid")

    @uid.setter
    def uid(self, value: str) -> None:
        self._set_meta("uid", value)

    @property
    def kind(self) -> str:
        return self._get_top("kind")

    @kind.setter
    def kind(self, value: str) -> None:
        self.object["kind"] = value

    @property
    def api_version(self) -> str:
        return self._get_top("apiVersion")

    @api_version.setter
    def api_version(self, value: str) -> None:
        self.object["apiVersion"] = value

    @property
    def owner_references(self) -> list[OwnerReference]:
        refs = self._metadata().get("ownerReferences")
        if not isinstance(refs, list):
            return []
        return [OwnerReference.from_dict(ref) for ref in refs if isinstance(ref, dict)]

    @owner_references.setter
    def owner_references(self, refs: Sequence[OwnerReference] | None) -> None:
        if refs is None:
            self._metadata().pop("ownerReferences", None)
            return
        self._metadata(create=True)["ownerReferences"] = [ref.to_dict() for ref in refs]


class ClientError(Exception):
    """Raised by a client when a request on a resource fails."""

    def __init__(self, message: str = "", name: str = "", resource: str = "") -> None:
        super().__init__(message)
        self.name = name
        self.resource = resource


class NotFoundError(ClientError):
    """The requested resource does not exist."""

    def __init__(self, name: str = "", resource: str = "") -> None:
        super().__init__(f'{resource} "{name}" not found', name, resource)


class AlreadyExistsError(ClientError):
    """A resource with the same name already exists."""

    def __init__(self, name: str = "", resource: str = "") -> None:
        super().__init__(f'{resource} "{name}" already exists', name, resource)


class ConflictError(ClientError):
    """The resource was modified concurrently; the request may be retried."""

    def __init__(self, name: str = "", resource: str = "") -> None:
        super().__init__(f'operation on {resource} "{name}" conflicts with a newer version', name, resource)


class Client(ABC):
    """Access to one kind of resource in one namespace."""

    @abstractmethod
    def create(self, obj: Unstructured, dry_run: Sequence[str] | None = None) -> Unstructured:
        """Create the object and return the stored version."""

    @abstractmethod
    def update(self, obj: Unstructured, dry_run: Sequence[str] | None = None) -> Unstructured:
        """Replace the stored object and return the new version."""

    @abstractmethod
    def update_status(self, obj: Unstructured) -> Unstructured:
        """Replace the status of the stored object."""

    @abstractmethod
    def delete(
        self,
        name: str,
        dry_run: Sequence[str] | None = None,
        propagation_policy: str | None = None,
    ) -> None:
        """Delete the object with the given name."""

    @abstractmethod
    def delete_collection(self, dry_run: Sequence[str] | None = None) -> None:
        """Delete every object of this kind."""

    @abstractmethod
    def get(self, name: str) -> Unstructured:
        """Return the object with the given name; raise NotFoundError if missing."""

    @abstractmethod
    def list(self) -> list[Unstructured]:
        """Return every object of this kind."""

    @abstractmethod
    def watch(self, kind: str = "", api_version: str = "", field_selector: str = "") -> Iterable[Any]:
        """Return an iterable of watch events for matching objects."""


class StatusType(IntEnum):
    """Outcome of applying or deleting one object."""

    UNKNOWN = -1
    CREATED = 0
    UPDATED = 1
    SKIPPED = 2
    APPLY_FAILED = 3
    DELETE_FAILED = 4
    DELETED = 5

    def __str__(self) -> str:
        return _STATUS_LABELS.get(self, "unknown")


_STATUS_LABELS = {
    StatusType.DELETED: "deleted",
    StatusType.SKIPPED: "skipped",
    StatusType.APPLY_FAILED: "applyFailed",
    StatusType.DELETE_FAILED: "deleteFailed",
    StatusType.CREATED: "created",
    StatusType.UPDATED: "updated",
}


@dataclass
class PostStatusEntry:
    """An object together with what happened to it."""

    status_type: StatusType
    object: Unstructured

    def to_owner_reference(self) -> OwnerReference:
        return OwnerReference(
            api_version=self.object.api_version,
            kind=self.object.kind,
            name=self.object.name,
            uid=self.object.uid,
        )

    @classmethod
    def created(cls, obj: Unstructured) -> PostStatusEntry:
        return cls(StatusType.CREATED, obj)

    @classmethod
    def updated(cls, obj: Unstructured) -> PostStatusEntry:
        return cls(StatusType.UPDATED, obj)

    @classmethod
    def skipped(cls, obj: Unstructured) -> PostStatusEntry:
        return cls(StatusType.SKIPPED, obj)

    @classmethod
    def apply_failed(cls, obj: Unstructured) -> PostStatusEntry:
        return cls(StatusType.APPLY_FAILED, obj)

    @classmethod
    def delete_failed(cls, obj: Unstructured) -> PostStatusEntry:
        return cls(StatusType.DELETE_FAILED, obj)

    @classmethod
    def deleted(cls, obj: Unstructured) -> PostStatusEntry:
        return cls(StatusType.DELETED, obj)


class Status(list[PostStatusEntry]):
    """A sequence of status entries."""

    @property
    def owner_references(self) -> list[OwnerReference]:
        return [entry.to_owner_reference() for entry in self]