"""Running function containers through a container engine client."""

from __future__ import annotations

import codecs
import contextlib
import json
import struct
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, BinaryIO, TextIO

from fnops.runtimes import Mount

_STDIN, _STDOUT, _STDERR, _SYSTEMERR = 0, 1, 2, 3
_HEADER = struct.Struct(">BxxxI")
_CHUNK = 4096


class ImageNotFoundError(Exception):
    """The image a container was to be created from is not available locally."""


class StreamFormatError(Exception):
    """A stream from the engine could not be decoded."""


@dataclass
class RunOpts:
    """What to run and how to expose it."""

    ports: dict[str, str] = field(default_factory=dict)
    envs: list[str] = field(default_factory=list)
    container_name: str = ""
    image: str = ""
    commands: list[str] = field(default_factory=list)
    user: str = ""
    mounts: list[Mount] = field(default_factory=list)


@dataclass
class ContainerConfig:
    """Settings of the container itself."""

    env: list[str] = field(default_factory=list)
    exposed_ports: set[str] = field(default_factory=set)
    image: str = ""
    cmd: list[str] = field(default_factory=list)
    user: str = ""


@dataclass
class HostConfig:
    """Settings of the host side of the container."""

    port_bindings: dict[str, list[dict[str, str]]] = field(default_factory=dict)
    auto_remove: bool = True
    mounts: list[Mount] = field(default_factory=list)


class DockerClient(ABC):
    """The container engine operations used to run functions."""

    @abstractmethod
    def container_create(self, config: ContainerConfig, host_config: HostConfig, name: str) -> str:
        """Create a container and return its id; raise ImageNotFoundError if the image is missing."""

    @abstractmethod
    def container_start(self, container_id: str) -> None:
        """Start a created container."""

    @abstractmethod
    def container_attach(self, container_id: str) -> BinaryIO:
        """Return the multiplexed output stream of the container; the caller closes it."""

    @abstractmethod
    def container_stop(self, container_id: str) -> None:
        """Stop the container."""

    @abstractmethod
    def image_pull(self, image: str) -> BinaryIO:
        """Start pulling the image and return its stream of JSON progress messages."""


def port_set(ports: Mapping[str, str]) -> set[str]:
    """The container ports to expose."""
    return set(ports)


def port_map(ports: Mapping[str, str]) -> dict[str, list[dict[str, str]]]:
    """Bindings from container ports to host ports."""
    return {container_port: [{"HostPort": host_port}] for container_port, host_port in ports.items()}


def run_container(client: DockerClient, opts: RunOpts) -> str:
    """Create and start a container, pulling its image first if needed; return its id."""
    config = ContainerConfig(
        env=list(opts.envs),
        exposed_ports=port_set(opts.ports),
        image=opts.image,
        cmd=["/bin/sh", "-c", ";".join(opts.commands)],
        user=opts.user,
    )
    host_config = HostConfig(
        port_bindings=port_map(opts.ports),
        auto_remove=True,
        mounts=list(opts.mounts),
    )
    container_id = _pull_and_create(client, config, host_config, opts.container_name)
    client.container_start(container_id)
    return container_id


def _pull_and_create(
    client: DockerClient, config: ContainerConfig, host_config: HostConfig, name: str
) -> str:
    try:
        return client.container_create(config, host_config, name)
    except ImageNotFoundError:
        stream = client.image_pull(config.image)
        with contextlib.closing(stream):
            display_json_messages(stream, sys.stdout)
        return client.container_create(config, host_config, name)


def follow_run(
    client: DockerClient,
    container_id: str,
    stdout: BinaryIO | None = None,
    stderr: BinaryIO | None = None,
) -> None:
    """Copy the container's output to stdout and stderr until it ends."""
    stream = client.container_attach(container_id)
    with contextlib.closing(stream):
        demultiplex(
            stream,
            stdout if stdout is not None else sys.stdout.buffer,
            stderr if stderr is not None else sys.stderr.buffer,
        )


def stop(client: DockerClient, container_id: str, log: Callable[..., Any]) -> Callable[[], None]:
    """Return a function that stops the container, logging progress and errors."""

    def stop_container() -> None:
        log(f"\r- Removing container {container_id}...\n")
        try:
            client.container_stop(container_id)
        except Exception as exc:
            log(exc)

    return stop_container


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = stream.read(size - len(data))
        if not chunk:
            break
        data += chunk
    return bytes(data)


def demultiplex(stream: BinaryIO, stdout: BinaryIO, stderr: BinaryIO) -> int:
    """Split a multiplexed container stream into stdout and stderr; return bytes written.

    A truncated trailing frame ends the copy quietly.
    """
    written = 0
    while True:
        header = _read_exactly(stream, _HEADER.size)
        if len(header) < _HEADER.size:
            return written
        kind, size = _HEADER.unpack(header)
        if kind in (_STDIN, _STDOUT):
            out: BinaryIO | None = stdout
        elif kind == _STDERR:
            out = stderr
        elif kind == _SYSTEMERR:
            out = None
        else:
            raise StreamFormatError(f"Unrecognized input header: {kind}")
        frame = _read_exactly(stream, size)
        if len(frame) < size:
            return written
        if out is None:
            raise RuntimeError(f"error from daemon in stream: {frame.decode(errors='replace')}")
        out.write(frame)
        written += len(frame)


def _display(message: Any, out: TextIO) -> None:
    if not isinstance(message, dict):
        raise StreamFormatError(f"unexpected message in stream: {message!r}")
    detail = message.get("errorDetail")
    error = (detail.get("message") if isinstance(detail, dict) else None) or message.get("error")
    if error:
        raise RuntimeError(str(error))
    if message.get("stream"):
        out.write(str(message["stream"]))
        return
    prefix = f"{message['id']}: " if message.get("id") else ""
    status = str(message.get("status", ""))
    progress = message.get("progress")
    text = f"{status} {progress}" if progress else status
    out.write(f"{prefix}{text}\n")


def display_json_messages(stream: BinaryIO, out: TextIO) -> None:
    """Write a stream of JSON progress messages to out; raise on errors they report."""
    decoder = json.JSONDecoder()
    text_decoder = codecs.getincrementaldecoder("utf-8")()
    buffer = ""
    eof = False
    while True:
        buffer = buffer.lstrip()
        if buffer:
            try:
                message, end = decoder.raw_decode(buffer)
            except json.JSONDecodeError as exc:
                if eof:
                    raise StreamFormatError(f"invalid message in stream: {exc}") from exc
            else:
                buffer = buffer[end:]
                _display(message, out)
                continue
        elif eof:
            return
        chunk = stream.read(_CHUNK)
        if chunk:
            buffer += text_decoder.decode(chunk)
        else:
            eof = True
            buffer += text_decoder.decode(b"", final=True)