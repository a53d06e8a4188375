"""
Tests for the session directory: cap eviction, expiry purge, rotation and
revocation, including concurrent callers on one event loop.
"""
import asyncio
from datetime import timedelta

import pytest

from tasktrack.errors import SessionNotOwned
from tasktrack.services.session_directory import MAX_ACTIVE_SESSIONS, SessionDirectory
from tasktrack.stores.memory import MemoryRecordStore


def _directory(clock):
    store = MemoryRecordStore()
    return SessionDirectory(store.refresh_tokens, clock=clock), store


def test_cap_evicts_the_oldest_session(clock):
    directory, store = _directory(clock)
    expires = clock.now + timedelta(days=7)

    async def run():
        for i in range(MAX_ACTIVE_SESSIONS + 1):
            await directory.save(1, f"token-{i}", expires)
            clock.advance(seconds=1)
        return await directory.list_active(1)

    active = asyncio.run(run())
    assert len(active) == MAX_ACTIVE_SESSIONS
    assert "token-0" not in {record.token for record in active}
    assert asyncio.run(store.refresh_tokens.get_by_token("token-0")) is None


def test_cap_is_per_account(clock):
    directory, _ = _directory(clock)
    expires = clock.now + timedelta(days=7)

    async def run():
        for i in range(MAX_ACTIVE_SESSIONS):
            await directory.save(1, f"a-{i}", expires)
            await directory.save(2, f"b-{i}", expires)
        return await directory.list_active(1), await directory.list_active(2)

    first, second = asyncio.run(run())
    assert len(first) == MAX_ACTIVE_SESSIONS
    assert len(second) == MAX_ACTIVE_SESSIONS


def test_concurrent_saves_respect_the_cap(clock):
    directory, _ = _directory(clock)
    expires = clock.now + timedelta(days=7)

    async def run():
        await asyncio.gather(*(directory.save(1, f"t-{i}", expires) for i in range(12)))
        return await directory.list_active(1)

    assert len(asyncio.run(run())) == MAX_ACTIVE_SESSIONS


def test_expired_tokens_are_purged_on_save(clock):
    directory, store = _directory(clock)

    async def run():
        await directory.save(1, "short", clock.now + timedelta(minutes=1))
        clock.advance(minutes=2)
        await directory.save(1, "fresh", clock.now + timedelta(days=7))

    asyncio.run(run())
    assert asyncio.run(store.refresh_tokens.get_by_token("short")) is None
    assert asyncio.run(directory.is_active("fresh")) is True


def test_expired_token_is_not_active(clock):
    directory, _ = _directory(clock)
    asyncio.run(directory.save(1, "tok", clock.now + timedelta(minutes=1)))
    assert asyncio.run(directory.is_active("tok")) is True
    clock.advance(minutes=1)
    assert asyncio.run(directory.is_active("tok")) is False


def test_list_active_is_newest_first(clock):
    directory, _ = _directory(clock)
    expires = clock.now + timedelta(days=7)

    async def run():
        for name in ("first", "second", "third"):
            await directory.save(1, name, expires)
            clock.advance(seconds=1)
        return await directory.list_active(1)

    assert [record.token for record in asyncio.run(run())] == ["third", "second", "first"]


def test_rotate_swaps_tokens(clock):
    directory, _ = _directory(clock)
    expires = clock.now + timedelta(days=7)

    async def run():
        await directory.save(1, "old", expires)
        rotated = await directory.rotate("old", 1, "new", expires)
        return rotated, await directory.is_active("old"), await directory.is_active("new")

    assert asyncio.run(run()) == (True, False, True)


def test_rotating_a_consumed_token_fails(clock):
    directory, _ = _directory(clock)
    expires = clock.now + timedelta(days=7)

    async def run():
        await directory.save(1, "old", expires)
        first = await directory.rotate("old", 1, "new-1", expires)
        second = await directory.rotate("old", 1, "new-2", expires)
        return first, second, await directory.is_active("new-2")

    assert asyncio.run(run()) == (True, False, False)


def test_concurrent_rotations_only_one_wins(clock):
    directory, _ = _directory(clock)
    expires = clock.now + timedelta(days=7)

    async def run():
        await directory.save(1, "old", expires)
        return await asyncio.gather(
            directory.rotate("old", 1, "new-a", expires),
            directory.rotate("old", 1, "new-b", expires),
        )

    results = asyncio.run(run())
    assert sorted(results) == [False, True]


def test_rotate_rejects_another_accounts_token(clock):
    directory, _ = _directory(clock)
    expires = clock.now + timedelta(days=7)

    async def run():
        await directory.save(1, "mine", expires)
        return await directory.rotate("mine", 2, "stolen", expires)

    assert asyncio.run(run()) is False


def test_revoke_by_id_is_idempotent(clock):
    directory, _ = _directory(clock)

    async def run():
        record = await directory.save(1, "tok", clock.now + timedelta(days=7))
        return (
            await directory.revoke_by_id(record.id),
            await directory.revoke_by_id(record.id),
            await directory.revoke_by_id(9999),
        )

    assert asyncio.run(run()) == (True, False, False)


def test_revoke_by_token_is_idempotent(clock):
    directory, _ = _directory(clock)

    async def run():
        await directory.save(1, "tok", clock.now + timedelta(days=7))
        return (
            await directory.revoke_by_token("tok"),
            await directory.revoke_by_token("tok"),
            await directory.revoke_by_token("unknown"),
        )

    assert asyncio.run(run()) == (True, False, False)


def test_revoke_all_except_keeps_current(clock):
    directory, _ = _directory(clock)
    expires = clock.now + timedelta(days=7)

    async def run():
        for name in ("phone", "laptop", "tablet"):
            await directory.save(1, name, expires)
        revoked = await directory.revoke_all_except(1, "laptop")
        return revoked, await directory.list_active(1)

    revoked, active = asyncio.run(run())
    assert revoked == 2
    assert [record.token for record in active] == ["laptop"]


def test_revoke_all(clock):
    directory, _ = _directory(clock)
    expires = clock.now + timedelta(days=7)

    async def run():
        await directory.save(1, "a", expires)
        await directory.save(1, "b", expires)
        await directory.save(2, "c", expires)
        revoked = await directory.revoke_all(1)
        return revoked, await directory.list_active(1), await directory.list_active(2)

    revoked, first, second = asyncio.run(run())
    assert revoked == 2
    assert first == []
    assert len(second) == 1


def test_revoke_owned_checks_ownership(clock):
    directory, _ = _directory(clock)
    expires = clock.now + timedelta(days=7)

    async def run():
        foreign = await directory.save(2, "theirs", expires)
        with pytest.raises(SessionNotOwned):
            await directory.revoke_owned(1, foreign.id)
        return await directory.is_active("theirs")

    assert asyncio.run(run()) is True


def test_preview_does_not_leak_the_token(clock):
    directory, _ = _directory(clock)
    record = asyncio.run(directory.save(1, "secret-token-value", clock.now + timedelta(days=7)))
    assert len(record.preview) == 12
    assert record.preview not in "secret-token-value"


def test_account_locks_are_released_after_use(clock):
    directory, _ = _directory(clock)
    expires = clock.now + timedelta(days=7)

    async def run():
        await asyncio.gather(*(directory.save(account_id, f"t-{account_id}", expires)
                               for account_id in range(1, 51)))
        await directory.rotate("t-1", 1, "t-1b", expires)

    asyncio.run(run())
    assert len(directory._locks) == 0
