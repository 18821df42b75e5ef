from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "SubmitRequest",
    "SubmitResponse",
    "RankRequest",
    "RankResponse",
    "RatingPayload",
    "EvaluationResponse",
    "EvaluationSummaryItem",
]


# Strict: "2.5" and true are rejected instead of coerced; NaN/Infinity too
Score = Annotated[float, Field(strict=True, allow_inf_nan=False)]


class SubmitRequest(BaseModel):
    form_data: Dict[str, Any] = Field(alias="formData")
    score: Score


class SubmitResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    id: Optional[str] = None
    score: float
    percentile: Optional[str] = None
    rank: Optional[int] = None
    total_count: int = Field(serialization_alias="totalCount")
    show_ranking: bool = Field(serialization_alias="showRanking")
    from_cache: bool = Field(default=False, serialization_alias="fromCache")
    message: Optional[str] = None


class RankRequest(BaseModel):
    score: Score


class RankResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    percentile: Optional[str] = None
    rank: Optional[int] = None
    total_count: int = Field(serialization_alias="totalCount")
    show_ranking: bool = Field(serialization_alias="showRanking")
    from_cache: bool = Field(default=False, serialization_alias="fromCache")
    message: Optional[str] = None


class RatingPayload(BaseModel):
    key: str
    label: str


class EvaluationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    input_data: Dict[str, Any] = Field(serialization_alias="inputData")
    result_score: float = Field(serialization_alias="resultScore")
    created_at: datetime = Field(serialization_alias="createdAt")
    percentile: Optional[str] = None
    rank: Optional[int] = None
    total_count: int = Field(serialization_alias="totalCount")
    show_ranking: bool = Field(serialization_alias="showRanking")
    assessment: RatingPayload
    suggestions: List[str]


class EvaluationSummaryItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    result_score: float = Field(serialization_alias="resultScore")
    created_at: datetime = Field(serialization_alias="createdAt")
