"""ファンアウトハブ — オブザーバー接続管理とブロードキャスト"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol
from uuid import uuid4

from loguru import logger

from src.db.base import utc_now
from src.fanout.catalog import CatalogPage, ResourceCatalog
from src.fanout.protocol import (
    CatalogEntry,
    CompleteMessage,
    FanoutMessage,
    InitialDataMessage,
    NewEntryMessage,
    ProgressMessage,
)
from src.monitoring.metrics import (
    fanout_delivery_failures_total,
    fanout_events_total,
    fanout_observers,
)


# WebSocket クローズコード
CLOSE_GOING_AWAY = 1001
CLOSE_DELIVERY_FAILED = 1011


class ObserverTransport(Protocol):
    """送信チャネル（FastAPI WebSocket 互換）"""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class DeliveryFailureError(Exception):
    """オブザーバーへの送信失敗（切断済み・タイムアウト）"""

    def __init__(self, connection_id: str, reason: str) -> None:
        super().__init__(f"配信失敗: connection={connection_id}: {reason}")
        self.connection_id = connection_id
        self.reason = reason


class ObserverConnection:
    """オブザーバー接続（インメモリのみ、永続化しない）"""

    def __init__(self, transport: ObserverTransport, connected_at: datetime | None = None) -> None:
        self.id = str(uuid4())
        self.transport = transport
        self.cursor = 0  # request_more の既定開始位置
        self.connected_at = connected_at or utc_now()
        self.closed = False
        # 1接続あたりの送信を直列化し、生成順の配信を保つ
        self.send_lock = asyncio.Lock()

    async def send(self, message: FanoutMessage, timeout: float) -> None:
        async with self.send_lock:
            await self.deliver(message, timeout)

    async def deliver(self, message: FanoutMessage, timeout: float) -> None:
        """send_lock 取得済みの状態で送信

        Raises:
            DeliveryFailureError: 切断済み・送信エラー・タイムアウト
        """
        if self.closed:
            raise DeliveryFailureError(self.id, "closed")
        try:
            await asyncio.wait_for(self.transport.send_json(message.model_dump(mode="json")), timeout=timeout)
        except TimeoutError as e:
            raise DeliveryFailureError(self.id, f"timeout after {timeout}s") from e
        except Exception as e:
            raise DeliveryFailureError(self.id, f"{type(e).__name__}: {e}") from e

    async def close_transport(self, code: int, timeout: float) -> None:
        """下位チャネルを閉じる（相手に再接続を促す）。失敗はログのみ"""
        try:
            await asyncio.wait_for(self.transport.close(code=code), timeout=timeout)
        except Exception as e:
            logger.debug("トランスポートのクローズ失敗: id={}: {}: {}", self.id, type(e).__name__, e)


class FanoutHub:
    """接続中オブザーバーへの新規リソース配信

    - 配信はベストエフォート・オブザーバーごとに最大1回
    - 送信に失敗した接続はレジストリから外し、他の接続への配信は続行
    - レジストリの変更は排他、ブロードキャストはスナップショットを走査
    """

    def __init__(
        self,
        catalog: ResourceCatalog,
        entry_factory: Callable[[int], CatalogEntry],
        page_size_default: int = 25,
        page_size_max: int = 100,
        default_burst: int = 5,
        max_burst: int = 100,
        send_timeout_seconds: float = 5.0,
    ) -> None:
        self._catalog = catalog
        self._entry_factory = entry_factory
        self._page_size_default = page_size_default
        self._page_size_max = page_size_max
        self._default_burst = default_burst
        self._max_burst = max_burst
        self._send_timeout = send_timeout_seconds
        self._connections: dict[str, ObserverConnection] = {}
        self._registry_lock = asyncio.Lock()

    @property
    def catalog(self) -> ResourceCatalog:
        return self._catalog

    @property
    def observer_count(self) -> int:
        return len(self._connections)

    @property
    def has_observers(self) -> bool:
        return bool(self._connections)

    async def connect(self, transport: ObserverTransport) -> ObserverConnection:
        """接続を登録し、先頭ページのスナップショットを送信

        スナップショットはカタログ先頭（最古）からの1ページで、続きは request_more で取得する。
        スナップショット送信が終わるまで、この接続へのブロードキャストは待機する。

        Raises:
            DeliveryFailureError: スナップショット送信に失敗（接続は登録解除済み）
        """
        connection = ObserverConnection(transport)
        async with connection.send_lock:
            async with self._registry_lock:
                self._connections[connection.id] = connection
                fanout_observers.set(len(self._connections))

            snapshot = self._catalog.page(0, self._page_size_default)
            try:
                await connection.deliver(
                    InitialDataMessage(
                        data=snapshot.entries,
                        total=snapshot.total,
                        has_more=snapshot.has_more,
                    ),
                    self._send_timeout,
                )
            except DeliveryFailureError:
                await self._drop(connection)
                raise
            connection.cursor = snapshot.start + len(snapshot.entries)

        logger.info("オブザーバー接続: id={} ({} total)", connection.id, self.observer_count)
        return connection

    async def disconnect(self, connection: ObserverConnection, close_code: int | None = None) -> bool:
        """接続を解除（2回目以降は何もしない）

        close_code を渡すと、登録を外した接続のトランスポートもそのコードで閉じる。
        """
        async with self._registry_lock:
            removed = self._connections.pop(connection.id, None) is not None
            connection.closed = True
            fanout_observers.set(len(self._connections))
        if removed:
            logger.info("オブザーバー切断: id={} ({} total)", connection.id, self.observer_count)
            if close_code is not None:
                await connection.close_transport(close_code, self._send_timeout)
        return removed

    async def close_all(self) -> None:
        """全接続を解除（シャットダウン時）"""
        async with self._registry_lock:
            connections = list(self._connections.values())
        for connection in connections:
            await self.disconnect(connection, close_code=CLOSE_GOING_AWAY)

    async def broadcast(self, message: FanoutMessage) -> int:
        """全オブザーバーに配信

        Returns:
            配信に成功したオブザーバー数（失敗は呼び出し元に伝播しない）
        """
        async with self._registry_lock:
            targets = list(self._connections.values())

        fanout_events_total.labels(event_type=message.type.value).inc()
        if not targets:
            return 0

        results = await asyncio.gather(*(self.send_to(c, message) for c in targets))
        return sum(results)

    async def send_to(self, connection: ObserverConnection, message: FanoutMessage) -> bool:
        """1接続に送信。失敗時は接続を外して False"""
        try:
            await connection.send(message, self._send_timeout)
        except DeliveryFailureError as e:
            await self._drop(connection)
            logger.warning("オブザーバーへの配信失敗、接続を解除: {}", e.reason, connection_id=connection.id)
            return False
        return True

    def request_more(
        self,
        connection: ObserverConnection,
        start: int | None = None,
        limit: int | None = None,
    ) -> CatalogPage:
        """プル型ページング（ライブ配信とは独立）

        start 省略時は接続のカーソル位置から。limit は既定値・上限で丸める。
        """
        start = connection.cursor if start is None else max(start, 0)
        limit = self._page_size_default if limit is None else min(max(limit, 1), self._page_size_max)
        page = self._catalog.page(start, limit)
        connection.cursor = page.start + len(page.entries)
        return page

    async def publish_new_entry(self) -> CatalogEntry:
        """エントリを1件生成・追加してから全オブザーバーに配信"""
        entry = self._catalog.create(self._entry_factory)
        await self.broadcast(NewEntryMessage(entry=entry))
        return entry

    async def generate(
        self,
        count: int | None = None,
        requester: ObserverConnection | None = None,
    ) -> list[CatalogEntry]:
        """N件を1件ずつ生成・配信

        要求元には各件の進捗と、最後に完了通知を1回送る。
        """
        count = self._default_burst if count is None else min(max(count, 1), self._max_burst)
        logger.info("一括生成開始: count={}", count)

        entries: list[CatalogEntry] = []
        for i in range(count):
            entry = await self.publish_new_entry()
            entries.append(entry)
            if requester is not None and not requester.closed:
                await self.send_to(requester, ProgressMessage(current=i + 1, total=count, entry=entry))

        if requester is not None and not requester.closed:
            await self.send_to(
                requester,
                CompleteMessage(count=count, message=f"{count}件のエントリを生成しました"),
            )
        return entries

    async def _drop(self, connection: ObserverConnection) -> None:
        if await self.disconnect(connection, close_code=CLOSE_DELIVERY_FAILED):
            fanout_delivery_failures_total.inc()
