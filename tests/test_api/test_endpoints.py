"""
Router tests against the FastAPI app with the database swapped for SQLite.
"""

import uuid

import httpx
import pytest

from compliance_engine.dependencies import get_db, get_pipeline
from compliance_engine.main import app
from compliance_engine.pipeline.orchestrator import DocumentPipeline


REVIEWER_HEADERS = {"X-User-Id": "rev-1", "X-User-Role": "reviewer", "X-Session-Id": "s-1"}
OUTSIDER_HEADERS = {"X-User-Id": "intern-1", "X-User-Role": "intern"}


@pytest.fixture
async def client(session_factory):
    async def override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_pipeline] = lambda: DocumentPipeline(session_factory=session_factory)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


async def _ingest(client, text: str) -> dict:
    response = await client.post(
        "/api/v1/documents",
        json={
            "raw_text": text,
            "metadata": {"tags": ["invoice"], "mime_type": "text/plain", "file_size": 120},
            "created_at": "2024-03-15T10:00:00Z",
        },
        headers=REVIEWER_HEADERS,
    )
    assert response.status_code == 201
    return response.json()


class TestDocuments:

    async def test_ingest_and_read_back(self, client, sample_invoice_text):
        body = await _ingest(client, sample_invoice_text)
        assert body["risk_score"] == 55
        document_id = body["document_id"]

        entities = (await client.get(f"/api/v1/documents/{document_id}/entities")).json()
        assert len(entities) == 1
        assert entities[0]["account_numbers"][0]["parsed_value"] == "123456789012"

        assessments = (await client.get(f"/api/v1/documents/{document_id}/risk-assessments")).json()
        assert assessments[0]["status"] == "PENDING"

    async def test_unknown_document_is_404(self, client):
        response = await client.get(f"/api/v1/documents/{uuid.uuid4()}/entities")
        assert response.status_code == 404
        assert response.json()["error_code"] == "ERR_NOT_FOUND"

    async def test_inline_reprocess(self, client, sample_weekend_text):
        body = await _ingest(client, sample_weekend_text)
        response = await client.post(
            f"/api/v1/documents/{body['document_id']}/reprocess",
            params={"inline": True},
            json={"signals": {"currency_issues": True}},
        )
        assert response.status_code == 200
        result = response.json()
        assert result["mode"] == "inline"
        assert result["result"]["risk_score"] == 65


class TestReviewAndAudit:

    async def test_review_is_audited(self, client, sample_invoice_text):
        body = await _ingest(client, sample_invoice_text)
        assessment_id = body["assessment_id"]

        response = await client.post(
            f"/api/v1/risk-assessments/{assessment_id}/review",
            json={"status": "REVIEWED", "notes": "looks fine"},
            headers=REVIEWER_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["reviewed_by"] == "rev-1"

        conflict = await client.post(
            f"/api/v1/risk-assessments/{assessment_id}/review",
            json={"status": "REVIEWED"},
            headers=REVIEWER_HEADERS,
        )
        assert conflict.status_code == 409

        trail = (await client.get(f"/api/v1/audit/records/{assessment_id}")).json()
        assert [e["action_type"] for e in trail["events"]] == ["UPDATE", "CREATE"]
        assert all(e["integrity_verified"] for e in trail["events"])
        assert trail["events"][0]["session_id"] == "s-1"

    async def test_review_requires_user(self, client, sample_invoice_text):
        body = await _ingest(client, sample_invoice_text)
        response = await client.post(
            f"/api/v1/risk-assessments/{body['assessment_id']}/review",
            json={"status": "REVIEWED"},
        )
        assert response.status_code == 400


class TestCompliance:

    async def test_seed_and_check(self, client, sample_invoice_text):
        seeded = await client.post("/api/v1/compliance/frameworks/seed", headers=REVIEWER_HEADERS)
        assert seeded.status_code == 200
        frameworks = {f["name"]: f["framework_id"] for f in seeded.json()}

        body = await _ingest(client, sample_invoice_text)
        missing = str(uuid.uuid4())
        response = await client.post(
            "/api/v1/compliance/checks",
            json={"document_id": body["document_id"], "framework_ids": [frameworks["SOX"], missing]},
        )
        assert response.status_code == 200
        result = response.json()
        assert len(result["checks"]) == 1
        assert result["failures"][0]["framework_id"] == missing

        summary = (await client.get("/api/v1/compliance/summary")).json()
        assert summary["frameworks"]["SOX"]["check_count"] == 1

    async def test_duplicate_framework(self, client):
        payload = {"name": "HIPAA", "adjustment": {"kind": "fixed_bonus", "points": 5}}
        first = await client.post("/api/v1/compliance/frameworks", json=payload, headers=REVIEWER_HEADERS)
        assert first.status_code == 201
        assert first.json()["adjustment"] == {"kind": "fixed_bonus", "points": 5}
        second = await client.post("/api/v1/compliance/frameworks", json=payload, headers=REVIEWER_HEADERS)
        assert second.status_code == 409

    async def test_invalid_adjustment_rejected(self, client):
        response = await client.post(
            "/api/v1/compliance/frameworks",
            json={"name": "BAD", "adjustment": {"kind": "name_match"}},
            headers=REVIEWER_HEADERS,
        )
        assert response.status_code == 422


class TestWorkflow:

    async def test_denied_transition_is_403_and_audited(self, client, sample_invoice_text):
        body = await _ingest(client, sample_invoice_text)
        created = await client.post(
            f"/api/v1/documents/{body['document_id']}/workflows", headers=REVIEWER_HEADERS,
        )
        assert created.status_code == 201
        step_id = created.json()["steps"][0]["step_id"]

        denied = await client.post(
            f"/api/v1/workflow-steps/{step_id}/transition",
            json={"status": "IN_PROGRESS"},
            headers=OUTSIDER_HEADERS,
        )
        assert denied.status_code == 403
        assert denied.json()["error_code"] == "ERR_UNAUTHORIZED_TRANSITION"

        trail = (await client.get(f"/api/v1/audit/records/{step_id}")).json()
        assert trail["events"][0]["action_type"] == "REJECT"
        assert trail["events"][0]["risk_level"] == "HIGH"

        allowed = await client.post(
            f"/api/v1/workflow-steps/{step_id}/transition",
            json={"status": "IN_PROGRESS"},
            headers=REVIEWER_HEADERS,
        )
        assert allowed.status_code == 200
        assert allowed.json()["status"] == "IN_PROGRESS"

        steps = (await client.get(f"/api/v1/workflows/{created.json()['instance_id']}/steps")).json()
        assert [s["status"] for s in steps] == ["IN_PROGRESS", "PENDING", "PENDING"]


class TestComments:

    async def test_post_and_list_comments(self, client, sample_invoice_text):
        body = await _ingest(client, sample_invoice_text)
        url = f"/api/v1/documents/{body['document_id']}/comments"

        first = await client.post(url, json={"comment_text": "Check the vendor"}, headers=REVIEWER_HEADERS)
        assert first.status_code == 201
        assert first.json()["user_id"] == "rev-1"
        assert first.json()["comment_type"] == "GENERAL"

        urgent = await client.post(
            url,
            json={"comment_text": "Duplicate payment", "comment_type": "CONCERN", "priority": "URGENT"},
            headers=REVIEWER_HEADERS,
        )
        assert urgent.status_code == 201

        comments = (await client.get(url)).json()
        assert [c["comment_text"] for c in comments] == ["Check the vendor", "Duplicate payment"]

        trail = (await client.get(f"/api/v1/audit/records/{urgent.json()['comment_id']}")).json()
        assert trail["events"][0]["action_type"] == "CREATE"
        assert trail["events"][0]["risk_level"] == "HIGH"

    async def test_comment_requires_user(self, client, sample_invoice_text):
        body = await _ingest(client, sample_invoice_text)
        response = await client.post(
            f"/api/v1/documents/{body['document_id']}/comments", json={"comment_text": "anon"},
        )
        assert response.status_code == 400

    async def test_comments_on_unknown_document(self, client):
        response = await client.get(f"/api/v1/documents/{uuid.uuid4()}/comments")
        assert response.status_code == 404
