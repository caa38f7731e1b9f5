"""Error taxonomy shared by every feed-map stage.

A stage signals failure by raising a ``PipelineError`` subclass that
knows its own stage and code.  The orchestrator is the only place that
catches them: it turns the exception into ``PipelineResult.error`` and
the CLI writes ``{"error": exc.reason}``, so no raw exception crosses
the pipeline boundary.

Categories (``PipelineError.category``):

``validation``
    The input document or an entry is unusable.  Never retried.
``transient``
    The cache store failed; trying again may succeed.
``permanent``
    The run cannot finish (e.g. it was cancelled).
``contract``
    A stored payload no longer matches the document schema.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class of all feed-map errors.

    Attributes:
        message: Human-readable description.
        stage: Stage that raised (``"resolve_archive"``, ``"result_cache"``, ...).
        code: Stable upper-case code (``"KML_NOT_FOUND"``).
        retryable: Whether repeating the operation can succeed.
        correlation_id: Optional run identifier supplied by the caller.
    """

    default_stage: str = ""
    default_code: str = ""
    default_retryable: bool = False
    category_name: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool | None = None,
        correlation_id: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = self.default_retryable if retryable is None else retryable
        self.correlation_id = correlation_id

    @property
    def category(self) -> str:
        if self.category_name:
            return self.category_name
        return "transient" if self.retryable else "permanent"

    @property
    def reason(self) -> str:
        """Lower-case token written to the batch error payload (``"kml_not_found"``)."""
        return (self.code or "pipeline_failed").lower()

    def to_error_dict(self) -> dict[str, object]:
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
            "correlation_id": self.correlation_id,
        }


class ValidationError(PipelineError):
    """The input cannot be processed as given."""

    category_name = "validation"


class TransientError(PipelineError):
    """A storage hiccup; the operation may succeed if repeated."""

    category_name = "transient"
    default_retryable = True


class PermanentError(PipelineError):
    """The run stopped for a reason retrying will not fix."""

    category_name = "permanent"


class ContractError(PipelineError):
    """A serialised payload drifted from the expected schema."""

    category_name = "contract"
