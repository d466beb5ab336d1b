from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for payloads whose JSON keys are camelCase (`deletedCount`, ...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HistoryCreated(BaseModel):
    """Schema for `POST /history` responses."""

    message: str = "History saved"
    id: str


class HistoryDeleted(CamelModel):
    """Schema for `DELETE /history` responses."""

    message: str
    deleted_count: int


class HistoryStats(CamelModel):
    """
    Spam/ham breakdown of the prediction history.

    Attributes
    ----------
    spam, ham : int
        Number of records labeled spam, and of every other record.
    spam_percent, ham_percent : float
        Shares of the total in percent (0 when the history is empty).
    """

    spam: int
    ham: int
    spam_percent: float
    ham_percent: float


class PredictResponse(BaseModel):
    """Schema for successful `/predict` responses: the remote reply, untouched."""

    ok: bool = True
    result: Any = Field(examples=[{"prediction": "spam", "confidence": 0.97}])


class HealthResponse(BaseModel):
    status: str
