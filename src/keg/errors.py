"""Structured errors for keg.

Every failure raised by the package is a ``KegError`` carrying an
``ErrorKind`` so callers can branch on the kind instead of matching
messages. Use the factory classmethods to build errors consistently:

    raise KegError.not_found("meta", node=node_id.path)
    raise KegError.lock_timeout(node_id.path, timeout=2.0) from exc
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed set of error kinds."""

    NOT_FOUND = "NOT_FOUND"
    PARSE = "PARSE"
    CONFLICT = "CONFLICT"
    DESTINATION_EXISTS = "DESTINATION_EXISTS"
    LOCK_TIMEOUT = "LOCK_TIMEOUT"
    LOCK_FAILED = "LOCK_FAILED"
    BACKEND = "BACKEND"
    TRANSIENT = "TRANSIENT"
    RATE_LIMITED = "RATE_LIMITED"
    INDEX = "INDEX"
    INVALID = "INVALID"


class KegError(Exception):
    """A keg failure with a kind, a message and structured details."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        retryable: bool = False,
    ) -> None:
        self.kind = kind
        self.message = message
        self.details = details or {}
        self.retryable = retryable
        super().__init__(message)

    def __repr__(self) -> str:
        return f"KegError({self.kind.value}, {self.message!r})"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dict for JSON rendering."""
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            data["details"] = self.details
        if self.__cause__ is not None:
            data["cause"] = str(self.__cause__)
        return data

    # ─────────────────────────────────────────────────────────────────────
    # Factories
    # ─────────────────────────────────────────────────────────────────────

    @classmethod
    def not_found(cls, artifact: str, **details: Any) -> KegError:
        target = details.get("node") or details.get("name")
        suffix = f": {target}" if target else ""
        return cls(ErrorKind.NOT_FOUND, f"{artifact} not found{suffix}", {"artifact": artifact, **details})

    @classmethod
    def parse_error(cls, artifact: str, reason: str, **details: Any) -> KegError:
        return cls(ErrorKind.PARSE, f"failed to parse {artifact}: {reason}", {"artifact": artifact, **details})

    @classmethod
    def conflict(cls, node: str, expected: str | None = None, got: str | None = None) -> KegError:
        if expected is None and got is None:
            message = f"conflict for node {node}"
        else:
            message = f"conflict for node {node}: expected={expected} got={got}"
        return cls(ErrorKind.CONFLICT, message, {"node": node, "expected": expected, "got": got})

    @classmethod
    def destination_exists(cls, node: str) -> KegError:
        return cls(ErrorKind.DESTINATION_EXISTS, f"destination exists: {node}", {"node": node})

    @classmethod
    def lock_timeout(cls, node: str, timeout: float | None = None) -> KegError:
        return cls(
            ErrorKind.LOCK_TIMEOUT,
            f"lock acquire timeout for node {node}",
            {"node": node, "timeout": timeout},
        )

    @classmethod
    def lock_failed(cls, node: str, reason: str) -> KegError:
        return cls(ErrorKind.LOCK_FAILED, f"cannot acquire lock for node {node}: {reason}", {"node": node})

    @classmethod
    def backend(
        cls,
        backend: str,
        op: str,
        reason: str,
        *,
        status: int | None = None,
        transient: bool = False,
    ) -> KegError:
        if status:
            message = f"{backend} {op}: status={status}: {reason}"
        else:
            message = f"{backend} {op}: {reason}"
        return cls(
            ErrorKind.BACKEND,
            message,
            {"backend": backend, "op": op, "status": status},
            retryable=transient,
        )

    @classmethod
    def transient(cls, reason: str) -> KegError:
        return cls(ErrorKind.TRANSIENT, reason, retryable=True)

    @classmethod
    def rate_limited(cls, message: str = "", retry_after: float | None = None) -> KegError:
        if retry_after:
            text = f"rate limited: retry after {retry_after}s"
            if message:
                text = f"{text}: {message}"
        elif message:
            text = f"rate limited: {message}"
        else:
            text = "rate limited"
        return cls(ErrorKind.RATE_LIMITED, text, {"retry_after": retry_after}, retryable=True)

    @classmethod
    def index_failure(cls, index: str, op: str, reason: str) -> KegError:
        return cls(ErrorKind.INDEX, f"index {index} {op}: {reason}", {"index": index, "op": op})

    @classmethod
    def invalid(cls, message: str, **details: Any) -> KegError:
        return cls(ErrorKind.INVALID, message, details)


def _chain(exc: BaseException | None):
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        exc = exc.__cause__ or exc.__context__


def _has_kind(exc: BaseException | None, kind: ErrorKind) -> bool:
    return any(isinstance(e, KegError) and e.kind == kind for e in _chain(exc))


def is_not_found(exc: BaseException | None) -> bool:
    return _has_kind(exc, ErrorKind.NOT_FOUND)


def is_lock_timeout(exc: BaseException | None) -> bool:
    return _has_kind(exc, ErrorKind.LOCK_TIMEOUT)


def is_destination_exists(exc: BaseException | None) -> bool:
    return _has_kind(exc, ErrorKind.DESTINATION_EXISTS)


def is_conflict(exc: BaseException | None) -> bool:
    return _has_kind(exc, ErrorKind.CONFLICT)


def is_retryable(exc: BaseException | None) -> bool:
    """Report whether anything in the cause chain advertises ``retryable``.

    The check is structural: any exception exposing a truthy ``retryable``
    attribute counts, not only ``KegError``.
    """
    for e in _chain(exc):
        flag = getattr(e, "retryable", None)
        if flag is not None:
            return bool(flag() if callable(flag) else flag)
    return False


def format_error_json(error: KegError) -> str:
    """Render an error as a single JSON object."""
    return json.dumps({"error": error.to_dict()}, default=str)
