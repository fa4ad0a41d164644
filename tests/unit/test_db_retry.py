import psycopg
import pytest

from user_onboarding.db.helpers import DatabaseError, with_db_retry


@pytest.mark.asyncio
async def test_retries_recoverable_errors_then_succeeds():
    calls = {"n": 0}

    @with_db_retry(max_retries=2, base_delay=0)
    async def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise DatabaseError("connection reset", operation="fetch_one", recoverable=True)
        return "ok"

    assert await flaky() == "ok"
    assert calls["n"] == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_retries_but_stays_recoverable():
    @with_db_retry(max_retries=1, base_delay=0)
    async def down():
        raise psycopg.OperationalError("server closed the connection")

    with pytest.raises(DatabaseError) as exc_info:
        await down()

    assert exc_info.value.recoverable is True
    assert exc_info.value.operation == "down"
    assert isinstance(exc_info.value.__cause__, psycopg.OperationalError)


@pytest.mark.asyncio
async def test_permanent_errors_are_not_retried():
    calls = {"n": 0}

    @with_db_retry(max_retries=3, base_delay=0)
    async def broken():
        calls["n"] += 1
        raise DatabaseError("syntax error", operation="fetch_all", recoverable=False)

    with pytest.raises(DatabaseError):
        await broken()

    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_integrity_errors_are_not_retried():
    calls = {"n": 0}

    @with_db_retry(max_retries=3, base_delay=0)
    async def conflict():
        calls["n"] += 1
        raise psycopg.IntegrityError("duplicate key")

    with pytest.raises(psycopg.IntegrityError):
        await conflict()

    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_other_exceptions_propagate_unchanged():
    @with_db_retry(max_retries=3, base_delay=0)
    async def bug():
        raise KeyError("missing")

    with pytest.raises(KeyError):
        await bug()
