"""Exceptions raised while collecting telemetry or answering a request.

Collection failures (``CollectionError``, ``ParseError``) are fatal to one
refresh attempt; request failures (``RequestError`` subclasses) only affect
the line that caused them.
"""
from __future__ import annotations


class AdapterError(Exception):
    """Base class for everything the session reports as a protocol error."""


class CollectionError(AdapterError):
    """`nvidia-smi` is missing or exited with a non-zero status."""

    def __init__(self, returncode: int, output: str = "") -> None:
        self.returncode = returncode
        self.output = output
        message = f"nvidia-smi exited with status {returncode}"
        if output:
            message = f"{message}: {output}"
        super().__init__(message)


class ParseError(AdapterError):
    """`nvidia-smi` output does not have the expected tabular shape."""


class RequestError(AdapterError):
    pass


class InvalidRequest(RequestError):
    def __init__(self, line: str) -> None:
        self.line = line
        super().__init__(f"invalid request: '{line}'")


class UnknownDevice(RequestError):
    def __init__(self, device_index: int, device_count: int) -> None:
        self.device_index = device_index
        super().__init__(
            f"unknown device: device{device_index} ({device_count} device(s) detected)"
        )


class UnknownField(RequestError):
    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"unknown field: '{identifier}'")
