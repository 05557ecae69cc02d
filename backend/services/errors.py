"""Error taxonomy for the listing curation pipeline."""


class SourceUnavailableError(Exception):
    """A backing listing source failed or timed out."""

    def __init__(self, source: str, message: str = "source unavailable"):
        self.source = source
        super().__init__(f"{source}: {message}")


class ListingNotFoundError(Exception):
    """Raised by the review writer when no listing exists for a VIN."""

    def __init__(self, vin: str):
        self.vin = vin
        super().__init__(f"No vehicle found with VIN: {vin}")


class PipelineValidationError(ValueError):
    """Input rejected before any pipeline stage runs.

    ``errors`` holds one ``{"field": ..., "reason": ...}`` dict per problem.
    """

    def __init__(self, errors: list[dict]):
        self.errors = errors
        summary = "; ".join(f"{e['field']}: {e['reason']}" for e in errors)
        super().__init__(summary or "invalid input")

    @classmethod
    def from_pydantic(cls, exc) -> "PipelineValidationError":
        errors = []
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", ())) or "__root__"
            errors.append({"field": field, "reason": err.get("msg", "invalid value")})
        return cls(errors)


class CriteriaValidationError(PipelineValidationError):
    """Malformed filter, sort or pagination criteria."""


class ReviewValidationError(PipelineValidationError):
    """Malformed review annotation update."""


class InvariantViolationError(AssertionError):
    """A derived value broke an internal invariant (e.g. score outside [0, 100])."""
