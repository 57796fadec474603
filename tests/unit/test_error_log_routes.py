from __future__ import annotations

import datetime
import uuid
from unittest.mock import AsyncMock

import pytest
from app.storage.error_logs_repo import ErrorLogRecord, ErrorLogSummary, ErrorTypeCount
from fastapi.testclient import TestClient


class _ErrorRepoStub:
  def __init__(self) -> None:
    self.insert = AsyncMock()
    self.list_recent = AsyncMock(return_value=[])
    self.summarize = AsyncMock(return_value=ErrorLogSummary(total=0))


@pytest.fixture
def error_repo(monkeypatch):
  repo = _ErrorRepoStub()
  monkeypatch.setattr("app.api.routes.logs.ErrorLogRepository", lambda: repo)
  return repo


@pytest.mark.parametrize("payload", [{"message": "boom"}, {"errorType": "crash"}, {"errorType": "", "message": "boom"}, {}])
def test_report_error_requires_type_and_message(api_app, error_repo, payload):
  client = TestClient(api_app)

  response = client.post("/api/logs/error", json=payload)

  assert response.status_code == 400
  assert response.json()["detail"] == "errorType and message are required"
  error_repo.insert.assert_not_awaited()


def test_report_error_stores_report(api_app, error_repo):
  error_id = uuid.uuid4()
  error_repo.insert.return_value = error_id
  client = TestClient(api_app)

  payload = {"errorType": "push_registration", "message": "permission denied", "tokenId": "tok-1", "platform": "ios", "stackTrace": "at register()", "context": {"screen": "settings"}, "appVersion": "1.4.0"}
  response = client.post("/api/logs/error", json=payload)

  assert response.status_code == 200
  assert response.json() == {"success": True, "id": str(error_id)}
  report = error_repo.insert.await_args.args[0]
  assert report.error_type == "push_registration"
  assert report.message == "permission denied"
  assert report.token_id == "tok-1"
  assert report.stack_trace == "at register()"
  assert report.context == {"screen": "settings"}
  assert report.app_version == "1.4.0"


def test_report_error_keeps_whitespace_values_as_sent(api_app, error_repo):
  error_repo.insert.return_value = uuid.uuid4()
  client = TestClient(api_app)

  response = client.post("/api/logs/error", json={"errorType": " ", "message": "boom ", "platform": " ios", "appVersion": "", "tokenId": "tok-1 "})

  assert response.status_code == 200
  report = error_repo.insert.await_args.args[0]
  assert report.error_type == " "
  assert report.message == "boom "
  assert report.platform == " ios"
  assert report.token_id == "tok-1 "
  assert report.app_version is None


def test_report_error_storage_failure_returns_500(api_app, error_repo):
  error_repo.insert.side_effect = RuntimeError("db down")
  client = TestClient(api_app)

  response = client.post("/api/logs/error", json={"errorType": "crash", "message": "boom"})

  assert response.status_code == 500
  assert "db down" not in response.text


def test_list_errors_returns_records_and_stats(api_app, error_repo):
  created_at = datetime.datetime(2026, 10, 1, 12, 30, tzinfo=datetime.UTC)
  record = ErrorLogRecord(id=uuid.uuid4(), token_id=None, platform="android", error_type="crash", message="boom", stack_trace=None, context={"k": 1}, app_version="1.0.0", created_at=created_at)
  error_repo.list_recent.return_value = [record]
  error_repo.summarize.return_value = ErrorLogSummary(total=1, by_type=[ErrorTypeCount(error_type="crash", count=3), ErrorTypeCount(error_type="network", count=1)])
  client = TestClient(api_app)

  response = client.get("/api/logs/error", params={"errorType": "crash", "platform": "android", "limit": 10})

  assert response.status_code == 200
  body = response.json()
  assert body["success"] is True
  assert body["data"][0]["errorType"] == "crash"
  assert body["data"][0]["appVersion"] == "1.0.0"
  assert body["data"][0]["id"] == str(record.id)
  assert body["stats"] == {"total": 1, "errorTypes": [{"type": "crash", "count": 3}, {"type": "network", "count": 1}]}
  error_repo.list_recent.assert_awaited_once_with(error_type="crash", platform="android", limit=10)
  error_repo.summarize.assert_awaited_once_with(error_type="crash", platform="android")


def test_list_errors_defaults_and_clamps_limit(api_app, error_repo):
  client = TestClient(api_app)

  client.get("/api/logs/error")
  client.get("/api/logs/error", params={"limit": 100000})

  first, second = error_repo.list_recent.await_args_list
  assert first.kwargs["limit"] == 50
  assert second.kwargs["limit"] == 500


def test_list_errors_rejects_non_positive_limit(api_app, error_repo):
  client = TestClient(api_app)

  response = client.get("/api/logs/error", params={"limit": 0})

  assert response.status_code == 422
  error_repo.list_recent.assert_not_awaited()
