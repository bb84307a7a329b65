"""Tests for the FastAPI application.

WHY: The browser client depends on every endpoint's status codes and
body shapes: extraction errors must be told apart (bad input, fetch
failure, too little text), summaries must report missing configuration
separately from model failures, and the library must never leak one
user's items to another.

HOW: Each test builds a fresh app with create_app(), injecting either a
real SQLite-backed Backend under tmp_path or the demo-mode Unavailable
value. Network-bound extractors and the summary client are patched on
the speakit.server.app module. Requests go through FastAPI's TestClient.

RULES:
- No test touches the network or a real language model
- Each test gets its own database file
- Error bodies are always {"detail": "..."}
"""

from __future__ import annotations

import asyncio
import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from speakit import __version__
from speakit.api.client import SummaryAPIError
from speakit.config import MAX_PDF_BYTES
from speakit.extract import ExtractedContent, ExtractionError, FetchError, PdfContent
from speakit.library import Unavailable, connect_backend
from speakit.library.backend import DEMO_MODE_REASON
from speakit.server.app import create_app, extract_pdf


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

ARTICLE = ExtractedContent(
    title="How Bees Communicate",
    content="Honeybees use a waggle dance to share where food is. " * 5,
    author="Jane Doe",
    published_date="2024-05-01",
)


@pytest.fixture
def client(tmp_path):
    backend = connect_backend(str(tmp_path / "speakit.db"))
    return TestClient(create_app(backend=backend))


@pytest.fixture
def demo_client():
    return TestClient(create_app(backend=Unavailable(DEMO_MODE_REASON)))


def _auth(token: str) -> dict:
    return {"Authorization": "Bearer {}".format(token)}


def _sign_up(client, email="reader@example.com", password="secret1") -> str:
    resp = client.post("/auth/sign-up", json={"email": email, "password": password})
    assert resp.status_code == 201
    return resp.json()["token"]


def _guest(client) -> str:
    resp = client.post("/auth/guest")
    assert resp.status_code == 201
    return resp.json()["token"]


def _save(client, token, **overrides) -> dict:
    body = {"title": "Bees", "content": "Bees dance.", "type": "url", "url": "https://x.test/bees"}
    body.update(overrides)
    resp = client.post("/library", json=body, headers=_auth(token))
    assert resp.status_code == 201
    return resp.json()


def _mock_summary_client(summary="A short summary.", error=None) -> MagicMock:
    instance = MagicMock()
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=False)
    instance.summarize = AsyncMock(return_value=summary, side_effect=error)
    return MagicMock(return_value=instance)


# ---------------------------------------------------------------------------
# POST /extract-url
# ---------------------------------------------------------------------------


class TestExtractUrl:
    def test_success(self, client):
        with patch("speakit.server.app.extract_from_url", new=AsyncMock(return_value=ARTICLE)):
            resp = client.post("/extract-url", json={"url": "https://news.example.com/bees"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["title"] == "How Bees Communicate"
        assert body["author"] == "Jane Doe"
        assert body["word_count"] == ARTICLE.word_count

    def test_missing_url(self, client):
        resp = client.post("/extract-url", json={})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "URL is required"

    def test_invalid_url(self, client):
        resp = client.post("/extract-url", json={"url": "notaurl"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid URL format"

    def test_fetch_failure_is_502(self, client):
        error = FetchError("https://news.example.com/bees", "Not Found", status_code=404)
        with patch("speakit.server.app.extract_from_url", new=AsyncMock(side_effect=error)):
            resp = client.post("/extract-url", json={"url": "https://news.example.com/bees"})
        assert resp.status_code == 502
        assert resp.json()["detail"].startswith("Failed to extract content")

    def test_thin_page_is_422(self, client):
        error = ExtractionError("Could not extract meaningful content from URL")
        with patch("speakit.server.app.extract_from_url", new=AsyncMock(side_effect=error)):
            resp = client.post("/extract-url", json={"url": "https://news.example.com/bees"})
        assert resp.status_code == 422
        assert "meaningful content" in resp.json()["detail"]


# ---------------------------------------------------------------------------
# POST /extract-pdf
# ---------------------------------------------------------------------------


class TestExtractPdf:
    def _upload(self, client, name="paper.pdf", content=b"%PDF-1.4 fake", mime="application/pdf"):
        return client.post("/extract-pdf", files={"file": (name, io.BytesIO(content), mime)})

    def test_success(self, client):
        result = PdfContent(title="Paper", content="word " * 40, num_pages=3)
        with patch("speakit.server.app.extract_from_pdf", return_value=result) as mock_extract:
            resp = self._upload(client)
        assert resp.status_code == 200
        assert resp.json() == {
            "title": "Paper",
            "content": result.content,
            "num_pages": 3,
            "word_count": 40,
        }
        mock_extract.assert_called_once_with(b"%PDF-1.4 fake")

    def test_pdf_extension_with_generic_mime(self, client):
        result = PdfContent(title="Paper", content="word " * 40, num_pages=1)
        with patch("speakit.server.app.extract_from_pdf", return_value=result):
            resp = self._upload(client, mime="application/octet-stream")
        assert resp.status_code == 200

    def test_missing_file(self, client):
        resp = client.post("/extract-pdf")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "File is required"

    def test_not_a_pdf(self, client):
        resp = self._upload(client, name="notes.txt", mime="text/plain")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Only PDF files are supported"

    def test_too_large(self, client):
        with patch("speakit.server.app.MAX_PDF_BYTES", 10):
            resp = self._upload(client, content=b"x" * 11)
        assert resp.status_code == 400
        assert "10MB" in resp.json()["detail"]

    def test_declared_size_rejected_before_reading(self):
        upload = MagicMock()
        upload.content_type = "application/pdf"
        upload.filename = "huge.pdf"
        upload.size = MAX_PDF_BYTES + 1
        upload.read = AsyncMock(return_value=b"")

        with pytest.raises(HTTPException) as excinfo:
            asyncio.run(extract_pdf(upload))
        assert excinfo.value.status_code == 400
        upload.read.assert_not_awaited()

    def test_unreadable_pdf_is_422(self, client):
        resp = self._upload(client, content=b"definitely not a pdf")
        assert resp.status_code == 422
        assert resp.json()["detail"].startswith("Failed to extract PDF content")


# ---------------------------------------------------------------------------
# POST /summarize
# ---------------------------------------------------------------------------


class TestSummarize:
    def test_success(self, client):
        with patch("speakit.server.app.SummaryClient", new=_mock_summary_client()):
            resp = client.post("/summarize", json={"content": "Long article text."})
        assert resp.status_code == 200
        assert resp.json() == {"summary": "A short summary."}

    def test_empty_content(self, client):
        resp = client.post("/summarize", json={"content": "   "})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Content is required"

    def test_missing_key_is_503(self, client, monkeypatch):
        monkeypatch.delenv("SPEAKIT_LLM_API_KEY", raising=False)
        resp = client.post("/summarize", json={"content": "Long article text."})
        assert resp.status_code == 503
        assert "SPEAKIT_LLM_API_KEY" in resp.json()["detail"]

    def test_model_failure_is_502(self, client):
        mock_cls = _mock_summary_client(error=SummaryAPIError(500, "upstream exploded"))
        with patch("speakit.server.app.SummaryClient", new=mock_cls):
            resp = client.post("/summarize", json={"content": "Long article text."})
        assert resp.status_code == 502
        assert resp.json()["detail"] == "Failed to generate summary: upstream exploded"


# ---------------------------------------------------------------------------
# POST /playback/estimate
# ---------------------------------------------------------------------------


class TestPlaybackEstimate:
    def test_four_words(self, client):
        resp = client.post("/playback/estimate", json={"content": "alpha beta gamma delta"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["word_count"] == 4
        assert body["base_words_per_minute"] == 150
        assert body["estimated_duration"] == pytest.approx(1.6)
        assert body["duration_display"] == "0:01"
        assert body["ms_per_word"] == pytest.approx(400.0)
        assert body["skip_words"] == 25

    def test_double_rate(self, client):
        resp = client.post("/playback/estimate", json={"content": "word " * 300, "rate": 2.0})
        body = resp.json()
        assert body["estimated_duration"] == pytest.approx(60.0)
        assert body["duration_display"] == "1:00"
        assert body["skip_words"] == 50

    def test_zero_rate_rejected(self, client):
        resp = client.post("/playback/estimate", json={"content": "a b", "rate": 0})
        assert resp.status_code == 422

    def test_infinite_rate_rejected(self, client):
        resp = client.post(
            "/playback/estimate",
            content='{"content": "a b", "rate": Infinity}',
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Auth endpoints
# ---------------------------------------------------------------------------


class TestAuth:
    def test_sign_up(self, client):
        resp = client.post("/auth/sign-up", json={"email": "reader@example.com", "password": "secret1"})
        assert resp.status_code == 201
        body = resp.json()
        assert body["state"] == "authenticated"
        assert body["token"]
        assert body["email"] == "reader@example.com"

    def test_duplicate_sign_up_is_409(self, client):
        _sign_up(client)
        resp = client.post("/auth/sign-up", json={"email": "reader@example.com", "password": "secret1"})
        assert resp.status_code == 409

    @pytest.mark.parametrize(
        "email,password",
        [("reader@example.com", "12345"), ("not-an-email", "secret1")],
    )
    def test_bad_sign_up_is_400(self, client, email, password):
        resp = client.post("/auth/sign-up", json={"email": email, "password": password})
        assert resp.status_code == 400

    def test_sign_in(self, client):
        _sign_up(client)
        resp = client.post("/auth/sign-in", json={"email": "reader@example.com", "password": "secret1"})
        assert resp.status_code == 200
        assert resp.json()["state"] == "authenticated"

    def test_wrong_password_is_401(self, client):
        _sign_up(client)
        resp = client.post("/auth/sign-in", json={"email": "reader@example.com", "password": "wrong!!"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid email or password"

    def test_guest(self, client):
        resp = client.post("/auth/guest")
        assert resp.status_code == 201
        assert resp.json()["state"] == "guest"
        assert resp.json()["user_id"].startswith("anon-")

    def test_session_without_token(self, client):
        resp = client.get("/auth/session")
        assert resp.status_code == 200
        assert resp.json()["state"] == "signed_out"
        assert resp.json()["user_id"] is None

    def test_session_with_token_hides_token(self, client):
        token = _sign_up(client)
        body = client.get("/auth/session", headers=_auth(token)).json()
        assert body["state"] == "authenticated"
        assert body["token"] is None

    def test_sign_out(self, client):
        token = _sign_up(client)
        resp = client.post("/auth/sign-out", headers=_auth(token))
        assert resp.status_code == 204
        assert client.get("/auth/session", headers=_auth(token)).json()["state"] == "signed_out"

    def test_malformed_authorization_header(self, client):
        resp = client.get("/auth/session", headers={"Authorization": "Token abc"})
        assert resp.json()["state"] == "signed_out"


# ---------------------------------------------------------------------------
# Library endpoints
# ---------------------------------------------------------------------------


class TestLibrary:
    def test_requires_sign_in(self, client):
        assert client.get("/library").status_code == 401

    def test_guest_is_forbidden(self, client):
        token = _guest(client)
        resp = client.get("/library", headers=_auth(token))
        assert resp.status_code == 403

    def test_save_and_list(self, client):
        token = _sign_up(client)
        saved = _save(client, token, summary="Bees dance to talk.")
        assert saved["type"] == "url"
        assert saved["summary"] == "Bees dance to talk."

        items = client.get("/library", headers=_auth(token)).json()["items"]
        assert [i["id"] for i in items] == [saved["id"]]

    def test_access_moves_item_to_front(self, client):
        token = _sign_up(client)
        first = _save(client, token, title="First")
        _save(client, token, title="Second", type="pdf", url=None)

        resp = client.post("/library/{}/access".format(first["id"]), headers=_auth(token))
        assert resp.status_code == 200
        assert resp.json()["last_accessed_at"] >= first["last_accessed_at"]

        titles = [i["title"] for i in client.get("/library", headers=_auth(token)).json()["items"]]
        assert titles[0] == "First"

    def test_get_and_delete(self, client):
        token = _sign_up(client)
        saved = _save(client, token)
        path = "/library/{}".format(saved["id"])

        assert client.get(path, headers=_auth(token)).json()["title"] == "Bees"
        assert client.delete(path, headers=_auth(token)).status_code == 204
        assert client.get(path, headers=_auth(token)).status_code == 404

    def test_access_to_item_deleted_mid_request_is_404(self, client):
        token = _sign_up(client)
        saved = _save(client, token)
        with patch("speakit.library.store.LibraryStore.touch", return_value=False):
            resp = client.post("/library/{}/access".format(saved["id"]), headers=_auth(token))
        assert resp.status_code == 404

    def test_delete_of_item_already_gone_is_404(self, client):
        token = _sign_up(client)
        saved = _save(client, token)
        with patch("speakit.library.store.LibraryStore.delete", return_value=False):
            resp = client.delete("/library/{}".format(saved["id"]), headers=_auth(token))
        assert resp.status_code == 404

    def test_other_users_items_are_hidden(self, client):
        owner = _sign_up(client, email="owner@example.com")
        other = _sign_up(client, email="other@example.com")
        saved = _save(client, owner)
        path = "/library/{}".format(saved["id"])

        assert client.get(path, headers=_auth(other)).status_code == 404
        assert client.delete(path, headers=_auth(other)).status_code == 404
        assert client.get("/library", headers=_auth(other)).json()["items"] == []
        assert client.get(path, headers=_auth(owner)).status_code == 200

    def test_invalid_type_rejected(self, client):
        token = _sign_up(client)
        resp = client.post(
            "/library",
            json={"title": "X", "content": "Y", "type": "video"},
            headers=_auth(token),
        )
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Demo mode and health
# ---------------------------------------------------------------------------


class TestDemoMode:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("post", "/auth/guest"),
            ("post", "/auth/sign-out"),
            ("get", "/auth/session"),
            ("get", "/library"),
            ("delete", "/library/abc"),
        ],
    )
    def test_auth_and_library_unavailable(self, demo_client, method, path):
        resp = getattr(demo_client, method)(path)
        assert resp.status_code == 503
        assert resp.json()["detail"] == DEMO_MODE_REASON

    def test_sign_in_unavailable(self, demo_client):
        resp = demo_client.post("/auth/sign-in", json={"email": "a@b.co", "password": "secret1"})
        assert resp.status_code == 503

    def test_playback_estimate_still_works(self, demo_client):
        resp = demo_client.post("/playback/estimate", json={"content": "one two"})
        assert resp.status_code == 200

    def test_health_reports_library_unavailable(self, demo_client):
        body = demo_client.get("/health").json()
        assert body == {"status": "ok", "version": __version__, "library_available": False}


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["library_available"] is True
