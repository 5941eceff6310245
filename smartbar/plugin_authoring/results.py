"""Per-item outcome of the batch authoring commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of processing one item of a batch.

    Attributes:
        payload: The item processed (manifest, manifest path or package record)
        exception: The error that faulted the item, or None on success
        output: File produced by the item, if any
    """

    payload: T
    exception: Optional[BaseException] = None
    output: Optional[Path] = None

    @classmethod
    def success(cls, payload: T, output: Optional[Path] = None) -> OperationResult[T]:
        """Create a successful result.

        Raises:
            ValueError: If ``payload`` is None
        """
        if payload is None:
            raise ValueError("payload must not be None")
        return cls(payload=payload, output=output)

    @classmethod
    def faulted(cls, payload: T, exception: BaseException) -> OperationResult[T]:
        """Create a faulted result.

        Raises:
            ValueError: If ``payload`` or ``exception`` is None
        """
        if payload is None:
            raise ValueError("payload must not be None")
        if exception is None:
            raise ValueError("exception must not be None")
        return cls(payload=payload, exception=exception)

    @property
    def successful(self) -> bool:
        return self.exception is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to a JSON-serializable dictionary."""
        payload = self.payload
        if hasattr(payload, "to_dict"):
            payload_data: Any = payload.to_dict()
        elif hasattr(payload, "model_dump"):
            payload_data = payload.model_dump(mode="json")
        else:
            payload_data = str(payload)

        return {
            "successful": self.successful,
            "payload": payload_data,
            "error": str(self.exception) if self.exception is not None else None,
            "output": str(self.output) if self.output is not None else None,
        }
