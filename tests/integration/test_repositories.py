"""Repository behaviour against a SQLite database."""

from __future__ import annotations

import datetime
import uuid

import pytest
from app.notifications.contracts import NotificationLogEntry
from app.notifications.notification_log_repo import NotificationLogRepository
from app.notifications.push_token_repo import PushTokenRegistration, PushTokenRepository
from app.schema import ErrorLog, NotificationLog, PushToken
from app.storage.error_logs_repo import ErrorLogRepository, ErrorReport
from sqlalchemy import Text, func, select

T0 = datetime.datetime(2024, 1, 1, 8, 0, 0, tzinfo=datetime.UTC)


async def _seed_tokens(session_factory, specs: list[tuple[str, str, bool]]) -> list[uuid.UUID]:
  ids = []
  async with session_factory() as session:
    for offset, (token, platform, is_active) in enumerate(specs):
      row = PushToken(token=token, platform=platform, is_active=is_active, created_at=T0 + datetime.timedelta(minutes=offset), last_used_at=T0)
      session.add(row)
      await session.flush()
      ids.append(row.id)
    await session.commit()
  return ids


@pytest.mark.anyio
async def test_upsert_creates_then_reactivates_same_row(sqlite_sessions):
  repo = PushTokenRepository()
  registration = PushTokenRegistration(token="ExponentPushToken[device-a]", platform="ios", device_info={"model": "iPhone 15"})

  token_id, created = await repo.upsert(registration)
  assert created is True

  assert await repo.deactivate_by_token("ExponentPushToken[device-a]") == 1

  again_id, created_again = await repo.upsert(PushTokenRegistration(token="ExponentPushToken[device-a]", platform="android", device_info=None))
  assert again_id == token_id
  assert created_again is False

  async with sqlite_sessions() as session:
    rows = (await session.execute(select(PushToken))).scalars().all()
  assert len(rows) == 1
  assert rows[0].is_active is True
  assert rows[0].platform == "android"
  assert rows[0].device_info is None


@pytest.mark.anyio
async def test_deactivate_unknown_token_returns_zero(sqlite_sessions):
  assert await PushTokenRepository().deactivate_by_token("ExponentPushToken[nobody]") == 0


@pytest.mark.anyio
async def test_find_active_skips_inactive_and_orders_by_registration(sqlite_sessions):
  ids = await _seed_tokens(sqlite_sessions, [("ExponentPushToken[a]", "ios", True), ("ExponentPushToken[b]", "android", False), ("ExponentPushToken[c]", "web", True)])

  active = await PushTokenRepository().find_active()

  assert [entry.id for entry in active] == [ids[0], ids[2]]
  assert [entry.token for entry in active] == ["ExponentPushToken[a]", "ExponentPushToken[c]"]
  assert all(entry.is_active for entry in active)


@pytest.mark.anyio
async def test_bulk_update_last_used_touches_only_given_ids(sqlite_sessions):
  ids = await _seed_tokens(sqlite_sessions, [("ExponentPushToken[a]", "ios", True), ("ExponentPushToken[b]", "ios", True)])
  stamp = datetime.datetime(2026, 6, 1, 12, 0, 0, tzinfo=datetime.UTC)
  repo = PushTokenRepository()

  assert await repo.bulk_update_last_used([], stamp) == 0
  assert await repo.bulk_update_last_used([ids[0]], stamp) == 1

  async with sqlite_sessions() as session:
    rows = {row.id: row for row in (await session.execute(select(PushToken))).scalars().all()}
  assert rows[ids[0]].last_used_at.replace(tzinfo=None) == stamp.replace(tzinfo=None)
  assert rows[ids[1]].last_used_at.replace(tzinfo=None) == T0.replace(tzinfo=None)


@pytest.mark.anyio
async def test_count_summary_groups_by_status_and_platform(sqlite_sessions):
  await _seed_tokens(
    sqlite_sessions,
    [("ExponentPushToken[a]", "ios", True), ("ExponentPushToken[b]", "android", True), ("ExponentPushToken[c]", "android", True), ("ExponentPushToken[d]", "web", False)],
  )

  summary = await PushTokenRepository().count_summary()

  assert summary.active == 3
  assert summary.inactive == 1
  assert summary.active_by_platform == {"android": 2, "ios": 1}


@pytest.mark.anyio
async def test_notification_log_create_and_count(sqlite_sessions):
  (token_id,) = await _seed_tokens(sqlite_sessions, [("ExponentPushToken[a]", "ios", True)])
  repo = NotificationLogRepository()

  log_id = await repo.create(NotificationLogEntry(token_id=token_id, title="Hi", body="There", data={"k": "v"}))
  async with sqlite_sessions() as session:
    session.add(NotificationLog(token_id=token_id, title="Old", body="News", data={}, status="sent", sent_at=T0))
    await session.commit()
    stored = await session.get(NotificationLog, log_id)

  assert stored.status == "sent"
  assert stored.data == {"k": "v"}
  assert stored.ticket_id is None
  assert stored.receipt_id is None
  assert await repo.count() == 2
  assert await repo.count(since=T0 + datetime.timedelta(days=1)) == 1


@pytest.mark.anyio
async def test_error_log_insert_list_and_summarize(sqlite_sessions):
  repo = ErrorLogRepository()
  new_id = await repo.insert(ErrorReport(error_type="crash", message="boom", platform="ios", context={"screen": "home"}, app_version="1.2.0"))

  async with sqlite_sessions() as session:
    session.add_all(
      [
        ErrorLog(error_type="crash", message="older crash", platform="android", created_at=T0),
        ErrorLog(error_type="network", message="timeout", platform="android", created_at=T0 + datetime.timedelta(minutes=1)),
        ErrorLog(error_type="crash", message="oldest crash", platform="android", created_at=T0 - datetime.timedelta(days=1)),
      ]
    )
    await session.commit()

  android_crashes = await repo.list_recent(error_type="crash", platform="android")
  assert [record.message for record in android_crashes] == ["older crash", "oldest crash"]

  limited = await repo.list_recent(limit=1)
  assert [record.id for record in limited] == [new_id]
  assert limited[0].context == {"screen": "home"}

  summary = await repo.summarize(error_type="crash", platform="android")
  assert summary.total == 2
  assert [(item.error_type, item.count) for item in summary.by_type] == [("crash", 3), ("network", 1)]

  async with sqlite_sessions() as session:
    assert (await session.execute(select(func.count(ErrorLog.id)))).scalar_one() == 4


@pytest.mark.anyio
async def test_upsert_falls_back_to_update_when_insert_races(sqlite_sessions, monkeypatch):
  [existing_id] = await _seed_tokens(sqlite_sessions, [("ExponentPushToken[raced]", "ios", False)])
  lookups: list[str] = []
  reactivate = PushTokenRepository._reactivate_with_session

  async def _miss_first_lookup(self, *, session, registration):
    # The first lookup behaves as if the row were not there yet, so the insert hits the unique constraint.
    lookups.append(registration.token)
    if len(lookups) == 1:
      return None
    return await reactivate(self, session=session, registration=registration)

  monkeypatch.setattr(PushTokenRepository, "_reactivate_with_session", _miss_first_lookup)

  token_id, created = await PushTokenRepository().upsert(PushTokenRegistration(token="ExponentPushToken[raced]", platform="android", device_info={"model": "Pixel 8"}))

  assert token_id == existing_id
  assert created is False
  assert len(lookups) == 2
  async with sqlite_sessions() as session:
    rows = (await session.execute(select(PushToken))).scalars().all()
  assert len(rows) == 1
  assert rows[0].is_active is True
  assert rows[0].platform == "android"
  assert rows[0].device_info == {"model": "Pixel 8"}


def test_client_supplied_text_columns_are_unbounded():
  columns = [NotificationLog.__table__.c.title, NotificationLog.__table__.c.body, ErrorLog.__table__.c.token_id, ErrorLog.__table__.c.platform, ErrorLog.__table__.c.error_type, ErrorLog.__table__.c.app_version]

  assert all(isinstance(column.type, Text) for column in columns)


@pytest.mark.anyio
async def test_long_titles_and_error_fields_are_stored_intact(sqlite_sessions):
  [token_id] = await _seed_tokens(sqlite_sessions, [("ExponentPushToken[long]", "ios", True)])
  title = "t" * 300
  platform = "p" * 40

  await NotificationLogRepository().create(NotificationLogEntry(token_id=token_id, title=title, body="There"))
  await ErrorLogRepository().insert(ErrorReport(error_type="e" * 300, message="boom", platform=platform, app_version="v" * 80))

  async with sqlite_sessions() as session:
    log = (await session.execute(select(NotificationLog))).scalar_one()
    error = (await session.execute(select(ErrorLog))).scalar_one()
  assert log.title == title
  assert error.platform == platform
  assert error.error_type == "e" * 300
  assert error.app_version == "v" * 80
