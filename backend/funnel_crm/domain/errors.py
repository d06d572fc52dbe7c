from dataclasses import dataclass
from typing import List


@dataclass
class DomainError(Exception):
    detail: str
    title: str = "Domain Error"
    type: str = "https://example.com/problems/domain-error"
    errors: List[dict] | None = None
    status: int = 400

    def __str__(self) -> str:
        return self.detail


@dataclass
class NotFoundError(DomainError):
    title: str = "Not Found"
    type: str = "https://example.com/problems/not-found"
    status: int = 404


@dataclass
class InvalidStateError(DomainError):
    title: str = "Invalid State"
    type: str = "https://example.com/problems/invalid-state"
    status: int = 409


@dataclass
class ForbiddenError(DomainError):
    title: str = "Forbidden"
    type: str = "https://example.com/problems/forbidden"
    status: int = 403
