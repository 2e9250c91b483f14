from __future__ import annotations

import asyncio

import pytest

from shahriar.models import schemas
from shahriar.services.persistence import (
    AuthenticationFailed,
    DuplicateRecord,
    PersistenceService,
    RecordNotFound,
    RecordValidationError,
    StorageWriteError,
)
from shahriar.services.storage import InMemoryStore


def _run(coro):  # noqa: ANN001
    return asyncio.run(coro)


def _service(store: InMemoryStore | None = None) -> tuple[PersistenceService, InMemoryStore]:
    store = store or InMemoryStore()
    ticks = iter(range(1_700_000_000, 1_800_000_000))
    return PersistenceService(store, clock=lambda: float(next(ticks))), store


def _register(service: PersistenceService, phone: str = "0912", password: str = "pass", name: str = "Ali"):
    return _run(service.register(schemas.RegisterRequest(phone=phone, password=password, name=name)))


def test_register_returns_profile_without_password() -> None:
    service, store = _service()

    user = _register(service)

    assert user.phone == "0912"
    assert user.name == "Ali"
    assert "password" not in user.model_dump(by_alias=True)
    stored = store.document["users"][0]
    assert stored["password"] == "pass"
    assert stored["learnedData"] == [] and stored["traits"] == []
    assert stored["customInstructions"] == ""


def test_register_rejects_duplicate_phone() -> None:
    service, store = _service()
    _register(service)

    with pytest.raises(DuplicateRecord):
        _register(service, name="Someone else")

    assert [u["phone"] for u in store.document["users"]] == ["0912"]


def test_register_generates_distinct_ids_for_same_millisecond() -> None:
    store = InMemoryStore()
    service = PersistenceService(store, clock=lambda: 1_700_000_000.0)

    first = _register(service, phone="1")
    second = _register(service, phone="2")

    assert first.id != second.id


def test_register_reports_write_failure() -> None:
    service, _ = _service(InMemoryStore(fail_writes=True))

    with pytest.raises(StorageWriteError):
        _register(service)


def test_login_distinguishes_unknown_phone_and_wrong_password() -> None:
    service, _ = _service()
    registered = _register(service)

    with pytest.raises(RecordNotFound):
        _run(service.login(schemas.LoginRequest(phone="0000", password="pass")))
    with pytest.raises(AuthenticationFailed):
        _run(service.login(schemas.LoginRequest(phone="0912", password="wrong")))

    user = _run(service.login(schemas.LoginRequest(phone="0912", password="pass")))
    assert user == registered


def test_login_accepts_non_ascii_password() -> None:
    service, _ = _service()
    registered = _register(service, password="رمز۱۲۳")

    user = _run(service.login(schemas.LoginRequest(phone="0912", password="رمز۱۲۳")))
    assert user == registered

    with pytest.raises(AuthenticationFailed):
        _run(service.login(schemas.LoginRequest(phone="0912", password="رمز۴۵۶")))


def test_update_user_keeps_stored_password() -> None:
    service, store = _service()
    user = _register(service)

    payload = schemas.UserUpdateRequest.model_validate(
        {**user.model_dump(by_alias=True), "bio": "Pistachio farmer", "password": "hijacked"}
    )
    echoed = _run(service.update_user(payload))

    assert echoed["bio"] == "Pistachio farmer"
    assert "password" not in echoed
    stored = store.document["users"][0]
    assert stored["password"] == "pass"
    assert stored["bio"] == "Pistachio farmer"


def test_update_user_requires_known_id() -> None:
    service, _ = _service()

    with pytest.raises(RecordValidationError):
        _run(service.update_user(schemas.UserUpdateRequest(name="x")))
    with pytest.raises(RecordNotFound):
        _run(service.update_user(schemas.UserUpdateRequest(id="missing")))


def test_get_user() -> None:
    service, _ = _service()
    user = _register(service)

    assert _run(service.get_user(user.id)) == user
    with pytest.raises(RecordNotFound):
        _run(service.get_user("nope"))


def test_upsert_session_is_idempotent_by_id() -> None:
    service, store = _service()

    for turn in range(3):
        record = schemas.SessionRecord.model_validate({"id": "s1", "userId": "u1", "messages": [turn]})
        _run(service.upsert_session(record))

    sessions = store.document["sessions"]
    assert len(sessions) == 1
    assert sessions[0]["messages"] == [2]


def test_list_sessions_filters_by_owner() -> None:
    service, _ = _service()
    _run(service.upsert_session(schemas.SessionRecord.model_validate({"id": "a", "userId": "u1"})))
    _run(service.upsert_session(schemas.SessionRecord.model_validate({"id": "b", "userId": "u2"})))

    assert [s["id"] for s in _run(service.list_sessions("u1"))] == ["a"]
    assert _run(service.list_sessions("nobody")) == []


def test_delete_missing_session_leaves_collection_unchanged() -> None:
    service, store = _service()
    _run(service.upsert_session(schemas.SessionRecord.model_validate({"id": "a", "userId": "u1"})))
    saves_before = store.save_count

    with pytest.raises(RecordNotFound):
        _run(service.delete_session("zzz"))

    assert len(store.document["sessions"]) == 1
    assert store.save_count == saves_before

    assert _run(service.delete_session("a")).success is True
    assert store.document["sessions"] == []


def test_health_and_vector_search_are_constant() -> None:
    service, _ = _service()

    assert service.health().status == "online"
    assert service.vector_search("pistachio").result == service.vector_search(None).result
