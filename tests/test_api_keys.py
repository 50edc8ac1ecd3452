"""
Tests for resumepath.api_keys: masking, storage routes and key resolution.
"""

import pytest
from postgrest.exceptions import APIError

from resumepath import settings
from resumepath.api_keys import USAGE_FEATURES, mask_key, normalize_usage, resolve_llm_key
from tests.mocks.fake_supabase import OTHER_ID, USER_ID, FakeSupabase


class TestHelpers:
    """Pure helpers."""

    @pytest.mark.parametrize("key,expected", [
        ("ollama-secret-123", "oll…-123"),
        ("short", "*****"),
        ("", ""),
        (None, ""),
    ])
    def test_mask_key(self, key, expected):
        assert mask_key(key) == expected

    def test_normalize_usage_defaults_on(self):
        usage = normalize_usage({"job_matching": False, "unknown": False})
        assert set(usage) == set(USAGE_FEATURES)
        assert usage["job_matching"] is False
        assert usage["resume_parsing"] is True


class TestRoutes:
    """Tests for /api/keys."""

    def test_save_and_list(self, client, fake_sb, user_headers):
        resp = client.post(
            "/api/keys",
            json={"provider": " Ollama ", "apiKey": "ollama-secret-123"},
            headers=user_headers,
        )
        assert resp.status_code == 201
        key = resp.json()["key"]
        assert key["provider"] == "ollama"
        assert key["apiKey"] == "oll…-123"
        assert key["serverUsable"] is True
        assert all(key["usageSettings"].values())

        listed = client.get("/api/keys", headers=user_headers).json()["keys"]
        assert [k["id"] for k in listed] == [key["id"]]
        assert "ollama-secret-123" not in str(listed)

    def test_one_key_per_provider(self, client, fake_sb, user_headers):
        client.post("/api/keys", json={"provider": "ollama", "apiKey": "first-key-0001"}, headers=user_headers)
        client.post(
            "/api/keys",
            json={"provider": "ollama", "apiKey": "second-key-0002", "usageSettings": {"report_generation": False}},
            headers=user_headers,
        )
        rows = fake_sb.rows("api_keys")
        assert len(rows) == 1
        assert rows[0]["api_key"] == "second-key-0002"
        assert rows[0]["usage_settings"]["report_generation"] is False

    def test_list_only_own_keys(self, client, fake_sb, user_headers):
        fake_sb.tables["api_keys"] = [
            {"id": "k-other", "user_id": OTHER_ID, "provider": "openai", "api_key": "sk-otheruser-key",
             "is_active": True, "created_at": "2024-01-01T00:00:00+00:00"},
        ]
        assert client.get("/api/keys", headers=user_headers).json() == {"keys": []}

    def test_missing_key_rejected(self, client, user_headers):
        resp = client.post("/api/keys", json={"provider": "ollama"}, headers=user_headers)
        assert resp.status_code == 400

    def test_delete(self, client, fake_sb, user_headers):
        fake_sb.tables["api_keys"] = [
            {"id": "k1", "user_id": USER_ID, "provider": "ollama", "api_key": "x" * 12, "is_active": True},
            {"id": "k2", "user_id": OTHER_ID, "provider": "ollama", "api_key": "y" * 12, "is_active": True},
        ]
        assert client.delete("/api/keys/k2", headers=user_headers).status_code == 404
        resp = client.delete("/api/keys/k1", headers=user_headers)
        assert resp.json() == {"success": True, "message": "API key deleted"}
        assert [r["id"] for r in fake_sb.rows("api_keys")] == ["k2"]

    def test_delete_unknown(self, client, user_headers):
        resp = client.delete("/api/keys/nope", headers=user_headers)
        assert resp.status_code == 404
        assert resp.json() == {"error": "API key not found"}


class TestResolveLlmKey:
    """Which key, if any, an LLM call uses for a user."""

    def _sb(self, usage=None, active=True):
        return FakeSupabase(tables={"api_keys": [
            {"id": "k1", "user_id": USER_ID, "provider": "ollama", "api_key": "user-ollama-key",
             "is_active": active, "usage_settings": usage or {}},
        ]})

    def test_user_key_wins(self, monkeypatch):
        monkeypatch.setattr(settings, "LLM_ENHANCE", True)
        assert resolve_llm_key(self._sb(), USER_ID, "resume_parsing") == "user-ollama-key"

    def test_feature_disabled(self, monkeypatch):
        monkeypatch.setattr(settings, "LLM_ENHANCE", False)
        assert resolve_llm_key(self._sb({"resume_parsing": False}), USER_ID, "resume_parsing") is None

    def test_inactive_key_ignored(self, monkeypatch):
        monkeypatch.setattr(settings, "LLM_ENHANCE", False)
        assert resolve_llm_key(self._sb(active=False), USER_ID, "resume_parsing") is None

    def test_server_fallback(self, monkeypatch):
        monkeypatch.setattr(settings, "LLM_ENHANCE", True)
        monkeypatch.setattr(settings, "OLLAMA_API_KEY", None)
        assert resolve_llm_key(FakeSupabase(), USER_ID, "report_generation") == ""
        monkeypatch.setattr(settings, "OLLAMA_API_KEY", "server-key")
        assert resolve_llm_key(FakeSupabase(), USER_ID, "report_generation") == "server-key"

    def test_lookup_failure_falls_back(self, monkeypatch):
        monkeypatch.setattr(settings, "LLM_ENHANCE", False)
        sb = self._sb()
        sb.failures["api_keys"] = APIError({"message": "down", "code": "500"})
        assert resolve_llm_key(sb, USER_ID, "resume_parsing") is None
