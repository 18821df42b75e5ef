import pytest
from sqlalchemy.exc import OperationalError

from jobworth.db.database import SessionLocal
from jobworth.db.repositories.evaluations import EvaluationRepository
from jobworth.dependencies import get_authoritative_store
from jobworth.main import app
from jobworth.stats.authoritative import AuthoritativeStore

FORM = {"salary": 15000, "workHours": 12, "commuteHours": 3}


def _submit(client, ip, score=2.5, form=FORM):
    return client.post(
        "/job-worth",
        json={"formData": form, "score": score},
        headers={"X-Forwarded-For": ip},
    )


def test_submit_first_evaluation(client, client_ip):
    response = _submit(client, client_ip)
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    assert body["id"]
    assert body["score"] == 2.5
    assert body["totalCount"] == 1
    assert body["fromCache"] is False
    # histogram backend below its sample minimum
    assert body["showRanking"] is False
    assert body["percentile"] is None
    assert body["rank"] is None


def test_duplicate_submission_is_flagged(client, client_ip):
    first = _submit(client, client_ip).json()
    second = _submit(client, client_ip)
    assert second.status_code == 200
    body = second.json()
    assert body["fromCache"] is True
    assert body["id"] is None
    assert body["message"]
    assert body["totalCount"] == first["totalCount"]

    stats = client.get("/stats").json()["data"]
    assert stats["jobWorth"]["total"] == 1
    assert stats["scoreDistribution"]["totalCount"] == 1


def test_durable_window_blocks_different_score(client, client_ip):
    _submit(client, client_ip, score=1.5)
    body = _submit(client, client_ip, score=3.5).json()
    assert body["fromCache"] is True
    assert "10 minutes" in body["message"]


def test_rank_lookup_uses_exact_counts(client, client_ip):
    for i, score in enumerate((1.0, 2.0, 3.0, 4.0)):
        assert _submit(client, f"{client_ip}-{i}", score=score).status_code == 200

    response = client.post("/job-worth-rank", json={"score": 2.5}, headers={"X-Forwarded-For": client_ip})
    assert response.status_code == 200
    body = response.json()
    assert body["showRanking"] is True
    assert body["totalCount"] == 4
    assert body["rank"] == 2
    assert body["percentile"] == "50.0"
    assert body["fromCache"] is False


def test_rank_lookup_after_own_submission_is_from_cache(client, client_ip):
    _submit(client, client_ip, score=2.0)
    body = client.post("/job-worth-rank", json={"score": 2.0}, headers={"X-Forwarded-For": client_ip}).json()
    assert body["fromCache"] is True
    assert body["rank"] == 0
    assert body["percentile"] == "0.0"


def test_rank_lookup_on_empty_store(client):
    body = client.post("/job-worth-rank", json={"score": 2.5}).json()
    assert body["totalCount"] == 0
    assert body["showRanking"] is False


def test_invalid_payloads_rejected(client, client_ip):
    assert _submit(client, client_ip, score="2.5").status_code == 422
    assert _submit(client, client_ip, score=None).status_code == 422
    assert client.post("/job-worth", json={"score": 2.5}).status_code == 422
    assert client.post("/job-worth-rank", json={"score": True}).status_code == 422
    assert client.get("/stats").json()["data"]["jobWorth"]["total"] == 0


def test_empty_form_data_is_accepted(client, client_ip):
    response = _submit(client, client_ip, form={})
    assert response.status_code == 200
    assert response.json()["id"]


def test_huge_finite_score_is_ranked(client, client_ip):
    submitted = _submit(client, client_ip, score=1e30)
    assert submitted.status_code == 200, submitted.text
    assert submitted.json()["totalCount"] == 1

    body = client.post("/job-worth-rank", json={"score": 1e30}, headers={"X-Forwarded-For": f"{client_ip}-r"}).json()
    assert body["rank"] == 0
    assert body["percentile"] == "0.0"
    assert body["totalCount"] == 1


def test_huge_score_from_anonymous_client_reaches_both_stores(client):
    response = _submit(client, "unknown", score=1e30)
    assert response.status_code == 200, response.text
    data = client.get("/stats").json()["data"]
    assert data["jobWorth"]["total"] == 1
    assert data["scoreDistribution"]["distribution"] == [
        {"score": "1000000000000000000000000000000.00", "count": 1}
    ]


def test_anonymous_repeat_submission_is_flagged(client):
    assert _submit(client, "unknown", score=2.0).json()["fromCache"] is False
    repeat = _submit(client, "unknown", score=2.0).json()
    assert repeat["fromCache"] is True
    assert repeat["id"] is None
    assert client.get("/stats").json()["data"]["jobWorth"]["total"] == 1


def test_fetch_evaluation(client, client_ip):
    evaluation_id = _submit(client, client_ip, score=2.5).json()["id"]
    response = client.get(f"/job-worth/{evaluation_id}")
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == evaluation_id
    assert body["inputData"] == FORM
    assert body["resultScore"] == 2.5
    assert body["assessment"]["key"] == "rating_good"
    assert len(body["suggestions"]) == 2
    assert body["totalCount"] == 1


def test_fetch_missing_evaluation(client):
    response = client.get("/job-worth/does-not-exist")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "evaluation_not_found"
    assert body["detail"]["id"] == "does-not-exist"


def test_recent_evaluations(client, client_ip):
    for i in range(3):
        _submit(client, f"{client_ip}-{i}", score=float(i + 1))
    items = client.get("/job-worth/recent", params={"limit": 2}).json()
    assert len(items) == 2
    assert {"id", "resultScore", "createdAt"} <= set(items[0])
    assert client.get("/job-worth/recent", params={"limit": 0}).status_code == 422


def test_stats_ranges(client, client_ip):
    for i, score in enumerate((0.5, 2.0, 4.5)):
        _submit(client, f"{client_ip}-{i}", score=score)
    data = client.get("/stats").json()["data"]
    ranges = {item["range"]: item["count"] for item in data["jobWorth"]["countByScoreRange"]}
    assert ranges["0-0.6"] == 1
    assert ranges["1.8-2.5"] == 1
    assert ranges["4.0+"] == 1
    assert data["jobWorth"]["avgScore"] == pytest.approx(7.0 / 3)
    assert [d["score"] for d in data["scoreDistribution"]["distribution"]] == ["0.50", "2.00", "4.50"]


class _BrokenRepository(EvaluationRepository):
    def add(self, **kwargs):
        raise OperationalError("INSERT", {}, Exception("password=hunter2"))


def test_storage_failure_returns_generic_500(client, client_ip):
    def _broken_store():
        with SessionLocal() as db:
            store = AuthoritativeStore(db)
            store._repo = _BrokenRepository(db)
            yield store

    app.dependency_overrides[get_authoritative_store] = _broken_store
    response = _submit(client, client_ip)
    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "persistence_error"
    assert body["detail"] == {"message": "Storage unavailable, please retry later"}
    assert "hunter2" not in response.text


def test_correlation_id_is_echoed(client):
    response = client.get("/job-worth/missing", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.json()["correlation_id"] == "req-123"


def test_health_and_root(client):
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["database"]["status"] == "connected"
    assert client.get("/").json()["status"] == "ok"
