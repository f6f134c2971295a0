# tests/infra/test_database.py
"""
Тесты для менеджера PostgreSQL: повтор запросов, пул и выделенные
соединения для LISTEN, применение схемы.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, call, patch

import asyncpg
import pytest

from src.infra.database import DatabaseManager, _init_schema, retry_on_connection_error


@pytest.fixture
def manager() -> DatabaseManager:
    """Свежий DatabaseManager без пула."""
    DatabaseManager._instance = None
    DatabaseManager._pool = None
    return DatabaseManager()


@pytest.fixture
def conn() -> MagicMock:
    connection = MagicMock()
    connection.execute = AsyncMock(return_value="UPDATE 1")
    connection.fetch = AsyncMock(return_value=[])
    connection.fetchrow = AsyncMock(return_value=None)
    connection.fetchval = AsyncMock(return_value=None)
    return connection


@pytest.fixture
def pooled(manager: DatabaseManager, conn: MagicMock) -> DatabaseManager:
    """Менеджер с пулом, который отдаёт conn."""
    pool = MagicMock()
    pool.acquire.return_value.__aenter__.return_value = conn
    pool.release = AsyncMock()
    pool.close = AsyncMock()
    manager._pool = pool
    return manager


class TestRetry:
    """Повтор запросов при обрыве соединения."""

    @pytest.mark.asyncio
    async def test_recovers_after_connection_drop(self) -> None:
        attempts: list[int] = []

        @retry_on_connection_error(max_attempts=3, delay=0.5)
        async def query() -> str:
            attempts.append(1)
            if len(attempts) < 3:
                raise asyncpg.InterfaceError("connection is closed")
            return "ok"

        with patch("src.infra.database.asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert await query() == "ok"

        assert len(attempts) == 3
        # задержка растёт линейно
        assert sleep.await_args_list == [call(0.5), call(1.0)]

    @pytest.mark.asyncio
    async def test_gives_up_with_last_error(self) -> None:
        @retry_on_connection_error(max_attempts=2, delay=0)
        async def query() -> None:
            raise ConnectionRefusedError("refused")

        with pytest.raises(ConnectionRefusedError):
            await query()

    @pytest.mark.asyncio
    async def test_query_errors_pass_through(self) -> None:
        """Ошибки SQL не повторяются."""
        attempts: list[int] = []

        @retry_on_connection_error(max_attempts=3, delay=0)
        async def query() -> None:
            attempts.append(1)
            raise asyncpg.UniqueViolationError("duplicate key")

        with pytest.raises(asyncpg.UniqueViolationError):
            await query()
        assert attempts == [1]


class TestPool:
    """Жизненный цикл пула."""

    def test_one_manager_per_process(self, manager: DatabaseManager) -> None:
        assert DatabaseManager() is manager

    def test_pool_required(self, manager: DatabaseManager) -> None:
        with pytest.raises(RuntimeError):
            _ = manager.pool

    @pytest.mark.asyncio
    async def test_connect_with_explicit_dsn(self, manager: DatabaseManager) -> None:
        pool = MagicMock()
        with patch("asyncpg.create_pool", new_callable=AsyncMock, return_value=pool) as create:
            await manager.connect(dsn="postgresql://hub@db/orders", min_size=1, max_size=4, command_timeout=5)
            await manager.connect(dsn="postgresql://hub@db/orders")

        create.assert_awaited_once_with(
            dsn="postgresql://hub@db/orders",
            min_size=1,
            max_size=4,
            command_timeout=5,
        )
        assert manager.pool is pool

    @pytest.mark.asyncio
    async def test_disconnect_twice(self, pooled: DatabaseManager) -> None:
        pool = pooled.pool

        await pooled.disconnect()
        await pooled.disconnect()

        pool.close.assert_awaited_once()
        assert pooled._pool is None


class TestQueries:
    """Запросы через соединение из пула."""

    @pytest.mark.asyncio
    async def test_fetchrow_passes_arguments(self, pooled: DatabaseManager, conn: MagicMock) -> None:
        conn.fetchrow.return_value = {"id": "order-1", "status": "pending"}

        row = await pooled.fetchrow("SELECT * FROM orders WHERE id = $1", "order-1")

        assert row["status"] == "pending"
        conn.fetchrow.assert_awaited_once_with("SELECT * FROM orders WHERE id = $1", "order-1")

    @pytest.mark.asyncio
    async def test_fetchval_column(self, pooled: DatabaseManager, conn: MagicMock) -> None:
        conn.fetchval.return_value = "cancelled"

        value = await pooled.fetchval("UPDATE orders SET status = $1 RETURNING id, status", "cancelled", column=1)

        assert value == "cancelled"
        assert conn.fetchval.await_args.kwargs == {"column": 1}

    @pytest.mark.asyncio
    async def test_execute_returns_status(self, pooled: DatabaseManager, conn: MagicMock) -> None:
        assert await pooled.execute("DELETE FROM orders") == "UPDATE 1"


class TestDedicatedConnection:
    """Соединения для LISTEN живут вне контекстного менеджера."""

    @pytest.mark.asyncio
    async def test_acquire_and_release(self, manager: DatabaseManager) -> None:
        listener_conn = MagicMock()
        pool = MagicMock()
        pool.acquire = AsyncMock(return_value=listener_conn)
        pool.release = AsyncMock()
        manager._pool = pool

        acquired = await manager.acquire_dedicated()
        pool.release.assert_not_awaited()
        await manager.release(acquired)

        assert acquired is listener_conn
        pool.release.assert_awaited_once_with(listener_conn)

    @pytest.mark.asyncio
    async def test_acquire_without_pool(self, manager: DatabaseManager) -> None:
        with pytest.raises(RuntimeError):
            await manager.acquire_dedicated()


class TestInitSchema:
    """Применение migrations/init.sql."""

    @pytest.mark.asyncio
    async def test_schema_applied_under_lock(
        self,
        pooled: DatabaseManager,
        conn: MagicMock,
        tmp_path: Path,
    ) -> None:
        (tmp_path / "migrations").mkdir()
        (tmp_path / "migrations" / "init.sql").write_text("CREATE TABLE orders ();", encoding="utf-8")

        with patch("src.config.loader.get_project_root", return_value=tmp_path):
            await _init_schema(pooled)

        assert [c.args[0] for c in conn.execute.await_args_list] == [
            "SELECT pg_advisory_xact_lock(20240601)",
            "CREATE TABLE orders ();",
        ]

    @pytest.mark.asyncio
    async def test_missing_schema_file(self, pooled: DatabaseManager, conn: MagicMock, tmp_path: Path) -> None:
        with patch("src.config.loader.get_project_root", return_value=tmp_path):
            await _init_schema(pooled)

        conn.execute.assert_not_awaited()
