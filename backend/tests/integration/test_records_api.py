"""API tests for records, sync and session routes (SQLite store, in-memory remote)."""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from notesync.config import Settings
from notesync.domain.entities import Record
from notesync.infrastructure.runtime import SyncRuntime, build_runtime
from notesync.main import create_app


@pytest_asyncio.fixture
async def runtime(session_factory, remote) -> AsyncIterator[SyncRuntime]:
    """A signed-in runtime that starts offline (remote unreachable)."""
    settings = Settings(
        _env_file=None,
        owner_id="u1",
        access_token="token-1",
        direct_writes_enabled=False,
    )
    runtime = build_runtime(settings, session_factory, gateway=remote)
    remote.healthy = False
    await runtime.start()
    try:
        yield runtime
    finally:
        await runtime.close()


@pytest_asyncio.fixture
async def client(runtime) -> AsyncIterator[AsyncClient]:
    app = create_app()
    app.state.runtime = runtime
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _create_note(client: AsyncClient, record_id: str = "n1", **fields) -> dict:
    response = await client.post(
        "/api/v1/records",
        json={"table": "notes", "id": record_id, "fields": fields or {"symptom_text": "fever"}},
    )
    assert response.status_code == 201, response.text
    return response.json()


# ── Records ──


@pytest.mark.asyncio
async def test_create_while_offline_is_saved_and_queued(client):
    body = await _create_note(client)

    assert body["id"] == "n1"
    assert body["owner_id"] == "u1"
    assert body["fields"]["symptom_text"] == "fever"
    assert body["fields"]["is_imported"] is False
    assert body["synced"] is False
    assert body["queued"] is True

    listed = await client.get("/api/v1/records", params={"table": "notes"})
    assert [r["id"] for r in listed.json()] == ["n1"]


@pytest.mark.asyncio
async def test_create_rejects_unknown_table_and_bad_fields(client):
    unknown = await client.post("/api/v1/records", json={"table": "profiles", "fields": {}})
    assert unknown.status_code == 400

    bad = await client.post(
        "/api/v1/records",
        json={"table": "training_completions", "fields": {"completed": True}},
    )
    assert bad.status_code == 422


@pytest.mark.asyncio
async def test_update_changes_only_given_fields(client):
    await _create_note(client, symptom_text="fever", rank="SGT")

    response = await client.patch("/api/v1/records/n1", json={"fields": {"symptom_text": "cough"}})

    assert response.status_code == 200
    fields = response.json()["fields"]
    assert fields["symptom_text"] == "cough"
    assert fields["rank"] == "SGT"


@pytest.mark.asyncio
async def test_delete_hides_record(client):
    await _create_note(client)

    assert (await client.delete("/api/v1/records/n1")).status_code == 204
    assert (await client.get("/api/v1/records/n1")).status_code == 404
    assert (await client.delete("/api/v1/records/n1")).status_code == 404


@pytest.mark.asyncio
async def test_create_with_taken_id_is_409(client, runtime):
    await _create_note(client, symptom_text="fever")
    await runtime.store.put(
        Record(owner_id="u2", table="notes", fields={"symptom_text": "theirs"}, id="n2")
    )

    duplicate = await client.post(
        "/api/v1/records", json={"table": "notes", "id": "n1", "fields": {"symptom_text": "x"}}
    )
    foreign = await client.post(
        "/api/v1/records", json={"table": "notes", "id": "n2", "fields": {"symptom_text": "x"}}
    )

    assert duplicate.status_code == 409
    assert foreign.status_code == 409
    assert (await client.get("/api/v1/records/n1")).json()["fields"]["symptom_text"] == "fever"
    assert (await runtime.store.get("n2")).fields == {"symptom_text": "theirs"}


@pytest.mark.asyncio
async def test_create_after_delete_reuses_the_id(client):
    await _create_note(client, symptom_text="fever")
    await client.delete("/api/v1/records/n1")

    body = await _create_note(client, symptom_text="again")

    assert body["fields"]["symptom_text"] == "again"
    assert (await client.get("/api/v1/records/n1")).status_code == 200


@pytest.mark.asyncio
async def test_missing_record_is_404(client):
    assert (await client.get("/api/v1/records/nope")).status_code == 404
    response = await client.patch("/api/v1/records/nope", json={"fields": {"rank": "PVT"}})
    assert response.status_code == 404


# ── Sync ──


@pytest.mark.asyncio
async def test_status_counts_pending_entries_offline(client):
    await _create_note(client, "n1")
    await _create_note(client, "n2")

    status = (await client.get("/api/v1/sync/status")).json()
    assert status == {
        "owner_id": "u1",
        "online": False,
        "pending": 2,
        "synced": 0,
        "failed": 0,
        "syncing": False,
    }


@pytest.mark.asyncio
async def test_manual_sync_while_offline_is_deferred(client):
    await _create_note(client)

    body = (await client.post("/api/v1/sync")).json()
    assert body["deferred"] is True
    assert body["processed"] == 0


@pytest.mark.asyncio
async def test_reporting_online_drains_the_queue(client, runtime, remote):
    await _create_note(client)
    remote.healthy = True

    response = await client.post("/api/v1/sync/connectivity", json={"online": True})
    assert response.json()["online"] is True
    await runtime.monitor.wait_idle()

    status = (await client.get("/api/v1/sync/status")).json()
    assert (status["pending"], status["synced"]) == (0, 1)
    assert remote.live("n1").fields["symptom_text"] == "fever"
    assert (await client.get("/api/v1/records/n1")).json()["synced"] is True


@pytest.mark.asyncio
async def test_manual_sync_online_reports_counts(client, runtime, remote):
    await _create_note(client)
    remote.healthy = True
    runtime.connectivity.set_online(True)
    await runtime.monitor.wait_idle()
    await _create_note(client, "n2")

    body = (await client.post("/api/v1/sync")).json()
    assert body == {"processed": 1, "failed": 0, "skipped": 0, "deferred": False}


# ── Session ──


@pytest.mark.asyncio
async def test_routes_require_a_signed_in_owner(client, runtime):
    runtime.session.sign_out()

    assert (await client.get("/api/v1/records")).status_code == 401
    assert (await client.get("/api/v1/sync/status")).status_code == 401
    assert (await client.get("/api/v1/session")).json()["authenticated"] is False


@pytest.mark.asyncio
async def test_sign_out_wipes_local_records(client, runtime):
    await _create_note(client)

    assert (await client.delete("/api/v1/session")).status_code == 204
    assert await runtime.store.get("n1") is None


@pytest.mark.asyncio
async def test_sign_in_pulls_remote_records(client, runtime, remote):
    await client.delete("/api/v1/session")
    remote.healthy = True
    remote.seed(Record(owner_id="u1", table="notes", fields={"symptom_text": "cough"}, id="r1"))

    response = await client.post(
        "/api/v1/session", json={"owner_id": "u1", "access_token": "token-2"}
    )

    assert response.status_code == 201
    assert response.json() == {"owner_id": "u1", "authenticated": True, "online": True}
    await runtime.monitor.wait_idle()
    listed = await client.get("/api/v1/records")
    assert [r["id"] for r in listed.json()] == ["r1"]
