from typing import List

from fastapi import APIRouter, Depends, Query

from jobworth.core.config import settings
from jobworth.core.errors import EvaluationNotFoundError
from jobworth.dedup.guard import DuplicateVerdict
from jobworth.dependencies import (
    get_authoritative_store,
    get_client_identity,
    get_rank_service,
    get_submission_service,
)
from jobworth.schemas.job_worth import (
    EvaluationResponse,
    EvaluationSummaryItem,
    RankRequest,
    RankResponse,
    RatingPayload,
    SubmitRequest,
    SubmitResponse,
)
from jobworth.services.assessment import improvement_suggestions, rate_score
from jobworth.services.client import ClientIdentity
from jobworth.services.ranking import RankBackend, RankService
from jobworth.services.submission import SubmissionService
from jobworth.stats.authoritative import AuthoritativeStore

router = APIRouter(tags=["job-worth"])


def _duplicate_message(verdict: DuplicateVerdict) -> str | None:
    if verdict is DuplicateVerdict.DURABLE_DUPLICATE:
        minutes = max(1, settings.durable_dedup_window_seconds // 60)
        return f"The same client cannot submit again within {minutes} minutes, please try later"
    if verdict is DuplicateVerdict.FAST_DUPLICATE:
        return "Duplicate request, statistics were not updated"
    return None


@router.post("/job-worth", response_model=SubmitResponse)
def submit_evaluation(
    payload: SubmitRequest,
    client: ClientIdentity = Depends(get_client_identity),
    service: SubmissionService = Depends(get_submission_service),
) -> SubmitResponse:
    outcome = service.submit(
        payload.form_data,
        payload.score,
        client,
        backend=RankBackend(settings.submit_rank_backend),
    )
    result = outcome.result
    return SubmitResponse(
        id=outcome.evaluation_id,
        score=outcome.score,
        percentile=result.visible_percentile,
        rank=result.visible_rank,
        total_count=result.total_count,
        show_ranking=result.show_ranking,
        from_cache=outcome.from_cache,
        message=_duplicate_message(outcome.verdict),
    )


@router.post("/job-worth-rank", response_model=RankResponse)
def rank_lookup(
    payload: RankRequest,
    client: ClientIdentity = Depends(get_client_identity),
    service: RankService = Depends(get_rank_service),
) -> RankResponse:
    outcome = service.lookup(payload.score, client.key, RankBackend(settings.lookup_rank_backend))
    result = outcome.result
    return RankResponse(
        percentile=result.visible_percentile,
        rank=result.visible_rank,
        total_count=result.total_count,
        show_ranking=result.show_ranking,
        from_cache=outcome.from_cache,
        message=_duplicate_message(outcome.verdict),
    )


@router.get("/job-worth/recent", response_model=List[EvaluationSummaryItem])
def recent_evaluations(
    limit: int = Query(default=10, ge=1, le=100),
    store: AuthoritativeStore = Depends(get_authoritative_store),
) -> List[EvaluationSummaryItem]:
    return [
        EvaluationSummaryItem(id=row.id, result_score=row.result_score, created_at=row.created_at)
        for row in store.latest(limit)
    ]


@router.get("/job-worth/{evaluation_id}", response_model=EvaluationResponse)
def get_evaluation(
    evaluation_id: str,
    service: RankService = Depends(get_rank_service),
) -> EvaluationResponse:
    row = service.store.fetch_by_id(evaluation_id)
    if row is None:
        raise EvaluationNotFoundError(detail={"id": evaluation_id})
    result = service.compute(row.result_score, RankBackend(settings.result_rank_backend))
    rating = rate_score(row.result_score)
    return EvaluationResponse(
        id=row.id,
        input_data=row.input_data or {},
        result_score=row.result_score,
        created_at=row.created_at,
        percentile=result.visible_percentile,
        rank=result.visible_rank,
        total_count=result.total_count,
        show_ranking=result.show_ranking,
        assessment=RatingPayload(key=rating.key, label=rating.label),
        suggestions=improvement_suggestions(row.input_data or {}),
    )
