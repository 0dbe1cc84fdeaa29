"""
Failure classification for the catalog and ledger engine.

Every failure the core can produce is one of a small set of known kinds.
None of them are fatal: callers decide whether to retry or tell the user.

- CatalogUnavailableError: catalog fetch failed or the payload was malformed
- LedgerUnavailableError: the ledger could not be read for a signed-in user
- MutationRejectedError: a write was refused (no identity, or backend failure)
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    INVALID_INPUT = "invalid_input"
    NOT_SIGNED_IN = "not_signed_in"
    SERVICE_UNAVAILABLE = "service_unavailable"
    MUTATION_REJECTED = "mutation_rejected"


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_detail(self) -> FailureDetail:
        """Convert to a serializable FailureDetail."""
        return FailureDetail(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class CatalogUnavailableError(KnownError):
    """Raised when the card catalog cannot be fetched or parsed."""

    def __init__(self, detail: str | None = None):
        super().__init__(
            kind=FailureKind.SERVICE_UNAVAILABLE,
            message="The card catalog is not available.",
            detail=detail,
            suggestion="Try again later, or run the catalog download job.",
            status_code=503,
        )


class LedgerUnavailableError(KnownError):
    """
    Raised when a signed-in user's ledger cannot be read.

    By the time this is raised the ledger has already published an empty
    snapshot in place of the previous one.
    """

    def __init__(self, user_id: str, detail: str | None = None):
        self.user_id = user_id
        super().__init__(
            kind=FailureKind.SERVICE_UNAVAILABLE,
            message="Your collection could not be loaded.",
            detail=detail,
            suggestion="Refresh your collection to try again.",
            status_code=503,
        )


class MutationRejectedError(KnownError):
    """Raised when a ledger write is refused. Ledger methods surface it as False."""

    def __init__(self, card_key: str, reason: str, signed_in: bool = True):
        self.card_key = card_key
        super().__init__(
            kind=FailureKind.MUTATION_REJECTED if signed_in else FailureKind.NOT_SIGNED_IN,
            message=f"Could not update '{card_key}' in your collection.",
            detail=reason,
            status_code=409 if signed_in else 401,
        )
