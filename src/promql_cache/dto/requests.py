"""Request DTOs for API endpoints."""

from pydantic import BaseModel, Field


class TranslateQueryRequest(BaseModel):
    """Request DTO for translating a question into PromQL.

    The handler will convert this to a call to the translation service.
    """

    query: str = Field(..., description="Natural-language question about a metric", min_length=1)
    time_range: str | None = Field(
        None,
        description="Range used for the {{time_range}} placeholder, e.g. 5m, 1h, 7d",
        examples=["5m"],
    )
    context: dict[str, str] = Field(
        default_factory=dict,
        description="Label values substituted into {{name}} placeholders (e.g. service, namespace)",
    )
    user_id: str | None = Field(None, description="Caller identity, stored in query history")
