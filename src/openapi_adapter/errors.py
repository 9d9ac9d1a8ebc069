"""Exception types raised across the adapter."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class AdapterError(Exception):
    pass


class ReferenceResolutionError(AdapterError):
    def __init__(self, pointer: str, message: str) -> None:
        super().__init__(message)
        self.pointer = pointer


class UnsupportedReference(ReferenceResolutionError):
    def __init__(self, pointer: str) -> None:
        super().__init__(pointer, f"External references not supported: {pointer}")


class ReferenceNotFound(ReferenceResolutionError):
    def __init__(self, pointer: str) -> None:
        super().__init__(pointer, f"Reference not found: {pointer}")


class ReferenceCycle(ReferenceResolutionError):
    def __init__(self, pointer: str, chain: List[str]) -> None:
        super().__init__(pointer, f"Circular reference: {' -> '.join([*chain, pointer])}")
        self.chain = chain


class ConversionError(AdapterError):
    pass


class ElicitationError(AdapterError):
    pass


class ElicitationCancelled(ElicitationError):
    def __init__(self) -> None:
        super().__init__("Operation cancelled. Required information was not provided.")


class ElicitationValidationFailed(ElicitationError):
    def __init__(self, errors: List[str]) -> None:
        super().__init__(f"Validation errors: {', '.join(errors)}")
        self.errors = errors


class SignatureError(AdapterError):
    pass


class ExecutionError(AdapterError):
    def __init__(
        self,
        message: str,
        request: Optional[Dict[str, Any]] = None,
        response_payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.request = request or {}
        self.response_payload = response_payload
