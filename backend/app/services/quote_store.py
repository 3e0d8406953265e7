"""
Quote persistence — injected key-value stores, the remote quote service, and the
editing session that ties them to the codec.

Stores are last-write-wins keyed by quotation number. The remote service is
optional: any httpx transport error degrades the session to local-only.
"""
import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx
from sqlalchemy import select

from app.config import DATABASE_URL, QUOTE_SERVICE_TIMEOUT_S, QUOTE_SERVICE_URL
from app.db import build_engine, build_session_factory, init_db
from app.models.orm_models import QuoteRecord
from app.models.window_models import QuotationAggregate
from app.services.perf_monitor import timed_async
from app.services.persistence_codec import PersistenceCodec

logger = logging.getLogger("fenestra-store")


@runtime_checkable
class QuoteStore(Protocol):
    """Async key-value store for encoded quotation records."""

    async def open(self) -> None: ...

    async def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    async def set(self, key: str, record: Dict[str, Any]) -> None: ...

    async def close(self) -> None: ...


# ── In-memory store ──────────────────────────────────────────────────────────

class InMemoryQuoteStore:
    """Process-local store; records are copied in and out so callers never share state."""

    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, Any]] = {}
        self.is_open = False

    async def open(self) -> None:
        self.is_open = True

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(key)
        return copy.deepcopy(record) if record is not None else None

    async def set(self, key: str, record: Dict[str, Any]) -> None:
        self._records[key] = copy.deepcopy(record)

    async def list_records(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._records.values()]

    async def close(self) -> None:
        self.is_open = False


# ── SQL store ────────────────────────────────────────────────────────────────

class SqlQuoteStore:
    """
    One ``quote_records`` row per quotation number, full record in a JSON column.

    Works against Postgres (asyncpg) in deployment and SQLite (aiosqlite) in tests.
    """

    def __init__(self, url: Optional[str] = None) -> None:
        self.url = url or DATABASE_URL
        self._engine = None
        self._sessions = None

    async def open(self) -> None:
        if self._engine is not None:
            return
        self._engine = build_engine(self.url)
        await init_db(self._engine)
        self._sessions = build_session_factory(self._engine)
        logger.info("Quote store opened (%s)", self._engine.url.get_backend_name())

    def _require_open(self):
        if self._sessions is None:
            raise RuntimeError("SqlQuoteStore.open() must be awaited before use")
        return self._sessions

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        async with self._require_open()() as session:
            row = await session.get(QuoteRecord, key)
            return dict(row.payload) if row is not None else None

    async def set(self, key: str, record: Dict[str, Any]) -> None:
        client = record.get("clientInfo") if isinstance(record.get("clientInfo"), dict) else {}
        pricing = record.get("pricing") if isinstance(record.get("pricing"), dict) else {}
        windows = record.get("windowSpecs")
        async with self._require_open()() as session:
            async with session.begin():
                row = await session.get(QuoteRecord, key)
                if row is None:
                    row = QuoteRecord(quotation_number=key)
                    session.add(row)
                row.status = str(record.get("status") or "draft")
                row.client_name = client.get("name") or None
                row.window_count = len(windows) if isinstance(windows, list) else 1
                row.grand_total = pricing.get("grandTotal")
                row.version = record.get("version")
                row.payload = record
        logger.debug("Stored %s", key, extra={"quotation_number": key})

    async def list_records(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        stmt = select(QuoteRecord).order_by(QuoteRecord.quotation_number)
        if status:
            stmt = stmt.where(QuoteRecord.status == status)
        async with self._require_open()() as session:
            result = await session.execute(stmt)
            return [dict(row.payload) for row in result.scalars()]

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._sessions = None


# ── Remote quote service ─────────────────────────────────────────────────────

class RemoteQuoteService:
    """
    Thin httpx client for the remote quote API.

    ``find_by_number`` returns None on 404; every other failure surfaces as an
    ``httpx.HTTPError`` for the session to handle.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = QUOTE_SERVICE_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or QUOTE_SERVICE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("RemoteQuoteService.open() must be awaited before use")
        return self._client

    async def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        resp = await self.client.post("/quotes", json=record)
        resp.raise_for_status()
        return resp.json() if resp.content else {}

    async def update(self, quote_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        resp = await self.client.put(f"/quotes/{quote_id}", json=record)
        resp.raise_for_status()
        return resp.json() if resp.content else {}

    async def find_by_number(self, quotation_number: str) -> Optional[Dict[str, Any]]:
        resp = await self.client.get(f"/quotes/number/{quotation_number}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def remote_id(document: Dict[str, Any]) -> Optional[str]:
    value = document.get("_id") or document.get("id")
    return str(value) if value is not None else None


# ── Editing session ──────────────────────────────────────────────────────────

@dataclass
class SaveResult:
    quotation_number: str
    record: Dict[str, Any]
    remote_synced: bool = False
    remote_action: Optional[str] = None      # created | updated | None


class QuoteSession:
    """
    Open at session start, save on each (caller-debounced) mutation, close at the end.

    The session only replaces ``current`` after a load has fully decoded, so an
    abandoned load never leaves a half-built aggregate behind.
    """

    def __init__(
        self,
        store: QuoteStore,
        remote: Optional[RemoteQuoteService] = None,
        codec: Optional[PersistenceCodec] = None,
    ) -> None:
        self.store = store
        self.remote = remote
        self.codec = codec or PersistenceCodec()
        self.current: Optional[QuotationAggregate] = None
        self.is_open = False

    async def open(self) -> None:
        await self.store.open()
        if self.remote is not None:
            await self.remote.open()
        self.is_open = True

    async def close(self) -> None:
        try:
            if self.remote is not None:
                await self.remote.close()
        finally:
            await self.store.close()
            self.is_open = False

    async def __aenter__(self) -> "QuoteSession":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @timed_async
    async def save(self, aggregate: QuotationAggregate) -> SaveResult:
        number = aggregate.quotation_number
        record = self.codec.encode(aggregate)
        await self.store.set(number, record)
        result = SaveResult(quotation_number=number, record=record)

        if self.remote is not None:
            try:
                existing = await self.remote.find_by_number(number)
                existing_id = remote_id(existing) if existing else None
                if existing_id:
                    await self.remote.update(existing_id, record)
                    result.remote_action = "updated"
                else:
                    await self.remote.create(record)
                    result.remote_action = "created"
                result.remote_synced = True
            except httpx.HTTPError as exc:
                logger.warning(
                    "Remote quote service unavailable, %s saved locally only: %s", number, exc,
                    extra={"quotation_number": number},
                )

        self.current = aggregate
        logger.info("Saved %s", number, extra={"quotation_number": number})
        return result

    @timed_async
    async def load(self, quotation_number: str) -> Optional[QuotationAggregate]:
        """Local store first, then the remote service; None when neither has the quote."""
        record = await self.store.get(quotation_number)
        if record is None and self.remote is not None:
            try:
                record = await self.remote.find_by_number(quotation_number)
            except httpx.HTTPError as exc:
                logger.warning(
                    "Remote lookup for %s failed: %s", quotation_number, exc,
                    extra={"quotation_number": quotation_number},
                )
            if record is not None:
                await self.store.set(quotation_number, record)

        if record is None:
            return None

        aggregate = self.codec.decode_or_default(record, quotation_number)
        self.current = aggregate
        logger.info("Loaded %s", quotation_number, extra={"quotation_number": quotation_number})
        return aggregate
