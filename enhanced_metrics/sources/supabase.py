"""PostgREST (Supabase) table source with offset paging."""

from __future__ import annotations

import threading
from types import TracebackType

from enhanced_metrics.common.config_loader import SourceCredentials, SourceSettings
from enhanced_metrics.common.errors import FetchError
from enhanced_metrics.common.http import HttpClient, HttpRequestError


class SupabaseTableSource:
    """Reads whole tables page by page.

    Without an injected ``http_client`` each calling thread gets its own
    ``HttpClient`` (and so its own ``requests.Session``); ``close`` releases
    every client the source created.
    """

    def __init__(
        self,
        credentials: SourceCredentials,
        settings: SourceSettings,
        *,
        http_client: HttpClient | None = None,
    ) -> None:
        self.credentials = credentials
        self.page_size = settings.page_size
        self.timeout = settings.timeout
        self.retry = settings.retry
        self._shared_client = http_client
        self._local = threading.local()
        self._owned_clients: list[HttpClient] = []
        self._lock = threading.Lock()

    @property
    def client(self) -> HttpClient:
        if self._shared_client is not None:
            return self._shared_client
        client = getattr(self._local, "client", None)
        if client is None:
            client = HttpClient(timeout=self.timeout, retry=self.retry)
            self._local.client = client
            with self._lock:
                self._owned_clients.append(client)
        return client

    def close(self) -> None:
        with self._lock:
            clients, self._owned_clients = self._owned_clients, []
        for client in clients:
            client.close()
        self._local = threading.local()

    def __enter__(self) -> "SupabaseTableSource":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _endpoint(self, table: str) -> str:
        return f"{self.credentials.url.rstrip('/')}/rest/v1/{table}"

    def _headers(self) -> dict[str, str]:
        key = self.credentials.service_key
        return {"apikey": key, "Authorization": f"Bearer {key}"}

    def _fetch_page(self, table: str, offset: int, order_by: str | None) -> list[dict]:
        params: dict[str, object] = {"select": "*", "limit": self.page_size, "offset": offset}
        if order_by:
            params["order"] = f"{order_by}.asc"
        try:
            payload = self.client.get_json(
                self._endpoint(table),
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except HttpRequestError as exc:
            raise FetchError(table, str(exc)) from exc

        if not isinstance(payload, list):
            raise FetchError(table, f"expected a JSON array, got {type(payload).__name__}")
        return payload

    def fetch_table(self, table: str, *, order_by: str | None = None) -> list[dict]:
        rows: list[dict] = []
        offset = 0
        while True:
            page = self._fetch_page(table, offset, order_by)
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            offset += self.page_size
