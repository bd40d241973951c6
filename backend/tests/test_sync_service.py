import asyncio

from casedesk.core.context import DataContext
from casedesk.services.record_store import CASES, HEARINGS
from casedesk.services.sync_service import CaseSync, Snapshot, load_cases

from conftest import USER_ID


async def _wait_for(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


def test_cached_snapshot_paints_before_subscription(store, context, cache):
    cache.save_cases(USER_ID, [{"id": "c1", "client_name": "Cached"}])
    cache.save_hearings(USER_ID, [{"id": "h1", "case_id": "c1", "date": "2026-10-20"}])

    sync = CaseSync(store, context)

    assert not sync.is_loading
    assert [c.clientName for c in sync.cases] == ["Cached"]
    assert [h.id for h in sync.cases[0].hearingDates] == ["h1"]


def test_no_cache_means_loading(store, context):
    sync = CaseSync(store, context)
    assert sync.is_loading
    assert sync.cases == []


def test_snapshot_replaces_raw_set_and_cache(store, context, cache):
    cache.save_cases(USER_ID, [{"id": "old", "client_name": "Old"}])
    sync = CaseSync(store, context)

    sync.apply(Snapshot(CASES, [{"id": "c1", "client_name": "Fresh"}]))
    cases = sync.apply(Snapshot(HEARINGS, [{"id": "h1", "case_id": "c1", "date": "2026-10-20"}]))

    assert [c.id for c in cases] == ["c1"]
    assert cases[0].hearingDates[0].id == "h1"
    cached_cases, cached_hearings = cache.load(USER_ID)
    assert cached_cases == [{"id": "c1", "client_name": "Fresh"}]
    assert cached_hearings == [{"id": "h1", "case_id": "c1", "date": "2026-10-20"}]


def test_hearing_for_case_not_yet_visible_appears_once_case_arrives(store, context):
    sync = CaseSync(store, context)

    assert sync.apply(Snapshot(HEARINGS, [{"id": "h1", "case_id": "c1", "date": "2026-10-20"}])) == []
    cases = sync.apply(Snapshot(CASES, [{"id": "c1"}]))

    assert [h.id for h in cases[0].hearingDates] == ["h1"]


def test_subscription_error_keeps_last_view(store, context):
    sync = CaseSync(store, context)
    sync.apply(Snapshot(CASES, [{"id": "c1"}]))

    cases = sync.apply(Snapshot(CASES, error="permission denied"))

    assert [c.id for c in cases] == ["c1"]
    assert context.last_error == "permission denied"


def test_live_sync_pushes_snapshots_on_every_change(store, context):
    async def scenario():
        case_id = store.seed(CASES, user_id=USER_ID, client_name="Ada")
        store.seed(CASES, user_id="other-user", client_name="Hidden")
        received = []

        async with CaseSync(store, context) as sync:
            sync.subscribe(received.append)
            await _wait_for(lambda: len(sync.cases) == 1)

            await store.create(HEARINGS, {"case_id": case_id, "user_id": USER_ID, "date": "2026-10-25"})
            await _wait_for(lambda: sync.cases and len(sync.cases[0].hearingDates) == 1)

            assert sync.cases[0].clientName == "Ada"
            assert received, "listener should see snapshots"
            assert not sync.is_loading

        assert not sync.is_running
        return sync

    asyncio.run(scenario())
    assert store._subscribers == []


def test_live_sync_read_error_sets_error_slot(store, context, cache):
    cache.save_cases(USER_ID, [{"id": "c1", "client_name": "Cached"}])
    cache.save_hearings(USER_ID, [])
    store.fail_reads = True

    async def scenario():
        async with CaseSync(store, context) as sync:
            await _wait_for(lambda: context.last_error is not None)
            return [c.clientName for c in sync.cases]

    assert asyncio.run(scenario()) == ["Cached"]
    assert context.last_error == "store unreachable"


def test_sync_without_user_is_empty(store, cache):
    context = DataContext(user_id=None, cache=cache)

    async def scenario():
        async with CaseSync(store, context) as sync:
            return sync.cases, sync.is_running

    assert asyncio.run(scenario()) == ([], False)


def test_load_cases_falls_back_to_cache(store, context, cache):
    store.seed(CASES, record_id="c1", user_id=USER_ID, client_name="Live")
    assert [c.clientName for c in asyncio.run(load_cases(store, context))] == ["Live"]

    store.fail_reads = True
    fallback = asyncio.run(load_cases(store, context))

    assert [c.clientName for c in fallback] == ["Live"]
    assert context.last_error == "store unreachable"


def test_out_of_range_record_does_not_stop_live_sync(store, context):
    async def scenario():
        store.seed(CASES, user_id=USER_ID, client_name="Ada")
        async with CaseSync(store, context) as sync:
            await _wait_for(lambda: len(sync.cases) == 1)
            await store.create(CASES, {"user_id": USER_ID, "client_name": "Old", "created_at": "0001-01-01T00:00:00+05:00"})
            await store.create(CASES, {"user_id": USER_ID, "client_name": "Grace"})
            await _wait_for(lambda: len(sync.cases) == 3)
            return sorted(c.clientName for c in sync.cases)

    assert asyncio.run(scenario()) == ["Ada", "Grace", "Old"]


def test_unjoinable_snapshot_keeps_last_view_and_sync_alive(store, context, cache, monkeypatch):
    from casedesk.services import sync_service

    real_join = sync_service.join_cases

    def fussy_join(raw_cases, raw_hearings):
        if any(c.get("client_name") == "Broken" for c in raw_cases):
            raise ValueError("cannot join Broken")
        return real_join(raw_cases, raw_hearings)

    monkeypatch.setattr(sync_service, "join_cases", fussy_join)

    async def scenario():
        store.seed(CASES, user_id=USER_ID, client_name="Ada")
        async with CaseSync(store, context) as sync:
            await _wait_for(lambda: len(sync.cases) == 1)

            broken_id = await store.create(CASES, {"user_id": USER_ID, "client_name": "Broken"})
            await _wait_for(lambda: context.last_error is not None)
            assert [c.clientName for c in sync.cases] == ["Ada"]
            assert [c["client_name"] for c in cache.load(USER_ID)[0]] == ["Ada"]

            await store.delete(CASES, broken_id, USER_ID)
            await store.create(CASES, {"user_id": USER_ID, "client_name": "Grace"})
            await _wait_for(lambda: len(sync.cases) == 2)
            return sorted(c.clientName for c in sync.cases)

    assert asyncio.run(scenario()) == ["Ada", "Grace"]
    assert context.last_error == "cannot join Broken"


def test_load_cases_serves_cache_when_join_fails(store, context, cache, monkeypatch):
    from casedesk.services import sync_service

    cache.save_cases(USER_ID, [{"id": "c1", "client_name": "Cached"}])
    cache.save_hearings(USER_ID, [])
    store.seed(CASES, user_id=USER_ID, client_name="Broken")
    real_join = sync_service.join_cases
    monkeypatch.setattr(
        sync_service,
        "join_cases",
        lambda cases, hearings: real_join(cases, hearings) if cases[0].get("client_name") != "Broken" else 1 / 0,
    )

    cases = asyncio.run(load_cases(store, context))

    assert [c.clientName for c in cases] == ["Cached"]
    assert context.last_error == "division by zero"
