"""
Generic cache-aside repository.

One Repository instance serves one entity collection. Reads go through a
time-based cache keyed by URL and query parameters; identical concurrent
reads share one execution; every network call is retried before failing;
successful writes invalidate the whole cache.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, Mapping, NamedTuple, TypeVar

from pydantic import BaseModel, ValidationError

from nexora_client.core.config.models import RepositoryConfig
from nexora_client.core.fetch import (
    InFlightRequests,
    ResponseCache,
    RetryConfig,
    build_cache_key,
    retry_async,
)
from nexora_client.core.observable import Subscription, Topic
from nexora_client.core.transport import (
    RequestSpec,
    Transport,
    TransportFailure,
    TransportResponse,
    join_url,
)

from .entities import PaginatedResponse
from .errors import ErrorKind, RepositoryError, default_message, from_transport_failure

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

QueryParams = Mapping[str, Any]


class ResponseOrigin(NamedTuple):
    """Where a payload came from, for error reports."""

    method: str
    url: str
    status: int


Parser = Callable[[Any, ResponseOrigin], Any]


def build_query_items(params: QueryParams | None) -> list[tuple[str, str]]:
    """Flatten query parameters into (key, value) pairs.

    None values are skipped, sequences repeat the key, booleans are
    lowercased.
    """
    items: list[tuple[str, str]] = []
    if not params:
        return items

    def render(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            items.extend((key, render(v)) for v in value)
        else:
            items.append((key, render(value)))
    return items


class Repository(Generic[ModelT]):
    """Cache-aside CRUD repository for one entity collection.

    Args:
        transport: Transport performing the HTTP calls
        config: Repository settings
        api_url: Base API origin
        model: Pydantic model payloads are parsed into (raw JSON if None)
        clock: Monotonic clock in seconds used for cache ages
    """

    def __init__(
        self,
        transport: Transport,
        config: RepositoryConfig,
        api_url: str,
        model: type[ModelT] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.transport = transport
        self.config = config
        self.model = model
        self.url = join_url(api_url, config.base_url)

        self._cache = ResponseCache(config.cache_timeout_ms, clock=clock)
        self._inflight: InFlightRequests[Any] = InFlightRequests()
        self._retry = RetryConfig(
            retries=config.retry_attempts,
            retry_exceptions=(TransportFailure,),
        )
        self._refreshes: Topic[None] = Topic(f"{config.entity_name}-refresh")

    @property
    def entity_name(self) -> str:
        return self.config.entity_name

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    def __repr__(self) -> str:
        return f"Repository({self.entity_name!r}, url={self.url!r})"

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def find_all(self, params: QueryParams | None = None) -> list[Any]:
        """Get all entities."""
        return await self._get("", params, self._parse_many)

    async def find_all_paginated(
        self,
        page: int = 0,
        size: int = 20,
        params: QueryParams | None = None,
    ) -> PaginatedResponse[Any]:
        """Get one page of entities."""
        query = {"page": page, "size": size, **(params or {})}
        return await self._get("paginated", query, self._parse_page)

    async def find_by_id(self, entity_id: str) -> Any:
        """Get an entity by id."""
        return await self._get(str(entity_id), None, self._parse_one)

    async def find_by_uuid(self, uuid: str) -> Any:
        """Get an entity by UUID."""
        return await self._get(f"uuid/{uuid}", None, self._parse_one)

    async def find_active(self, params: QueryParams | None = None) -> list[Any]:
        """Get active entities."""
        return await self._get("active", params, self._parse_many)

    async def search(self, query: str, params: QueryParams | None = None) -> list[Any]:
        """Search entities; the query is sent as `q`."""
        return await self._get("search", {"q": query, **(params or {})}, self._parse_many)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create(self, data: BaseModel | Mapping[str, Any]) -> Any:
        """Create a new entity."""
        return await self._write("POST", self.url, self._body(data), self._parse_one)

    async def update(self, entity_id: str, data: BaseModel | Mapping[str, Any]) -> Any:
        """Replace an existing entity."""
        return await self._write("PUT", self._build_url(str(entity_id)), self._body(data), self._parse_one)

    async def partial_update(self, entity_id: str, data: BaseModel | Mapping[str, Any]) -> Any:
        """Update some fields of an existing entity."""
        return await self._write("PATCH", self._build_url(str(entity_id)), self._body(data), self._parse_one)

    async def remove(self, entity_id: str) -> None:
        """Delete an entity."""
        await self._write("DELETE", self._build_url(str(entity_id)), None)

    async def activate(self, entity_id: str) -> Any:
        return await self._write("PUT", self._build_url(f"{entity_id}/activate"), {}, self._parse_one)

    async def deactivate(self, entity_id: str) -> Any:
        return await self._write("PUT", self._build_url(f"{entity_id}/deactivate"), {}, self._parse_one)

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    def refresh(self) -> None:
        """Drop cached reads and tell listeners to reload."""
        self._invalidate()
        self._refreshes.publish(None)

    def on_refresh(self, listener: Callable[[None], None]) -> Subscription:
        """Subscribe to `refresh()` calls."""
        return self._refreshes.subscribe(listener)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _build_url(self, endpoint: str) -> str:
        return join_url(self.url, endpoint) if endpoint else self.url

    async def _get(
        self,
        endpoint: str,
        params: QueryParams | None,
        parse: Parser,
    ) -> Any:
        url = self._build_url(endpoint)
        key = build_cache_key(url, params)

        if self.config.cache_enabled:
            entry = self._cache.get(key)
            if entry is not None:
                logger.debug("Cache hit for %s", url, extra={"entity": self.entity_name})
                return parse(entry.payload, ResponseOrigin("GET", url, 200))

        async def fetch() -> Any:
            epoch = self._cache.epoch
            response = await self._call("GET", url, params=params)
            origin = ResponseOrigin("GET", url, response.status_code)
            payload = self._decode(response, origin)
            result = parse(payload, origin)
            if self.config.cache_enabled:
                self._cache.store(key, payload, epoch=epoch)
            return result

        return await self._inflight.run(key, fetch)

    async def _write(self, method: str, url: str, body: Any, parse: Parser | None = None) -> Any:
        response = await self._call(method, url, json_data=body)
        self._invalidate()
        logger.debug(
            "%s %s succeeded; cache invalidated", method, url,
            extra={"entity": self.entity_name},
        )
        origin = ResponseOrigin(method, url, response.status_code)
        payload = self._decode(response, origin)
        return parse(payload, origin) if parse is not None else payload

    def _invalidate(self) -> None:
        # Reads still running keep their waiters but take no new ones
        self._cache.invalidate()
        self._inflight.forget_all()

    async def _call(
        self,
        method: str,
        url: str,
        params: QueryParams | None = None,
        json_data: Any = None,
    ) -> TransportResponse:
        spec = RequestSpec(
            url=url,
            method=method,
            params=build_query_items(params),
            json_data=json_data,
        )
        try:
            return await retry_async(self.transport.request, spec, config=self._retry)
        except TransportFailure as e:
            error = from_transport_failure(e, self.entity_name, method, url)
            logger.error(
                "Repository error [%s] %s: %s (status %s)",
                method, url, error.message, error.status,
                extra={"entity": self.entity_name, "method": method, "url": url, "status": error.status},
            )
            raise error from e

    def _decode(self, response: TransportResponse, origin: ResponseOrigin) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise self._invalid_response(origin, str(e)) from e

    def _invalid_response(self, origin: ResponseOrigin, details: Any) -> RepositoryError:
        error = RepositoryError(
            default_message(ErrorKind.INVALID_RESPONSE, self.entity_name),
            status=origin.status,
            path=origin.url,
            kind=ErrorKind.INVALID_RESPONSE,
            details=details,
            method=origin.method,
        )
        logger.error(
            "Repository error [%s] %s: %s", origin.method, origin.url, details,
            extra={"entity": self.entity_name},
        )
        return error

    @staticmethod
    def _body(data: BaseModel | Mapping[str, Any]) -> Any:
        if isinstance(data, BaseModel):
            return data.model_dump(by_alias=True, exclude_unset=True, mode="json")
        return dict(data)

    def _validate(self, func: Callable[[], Any], origin: ResponseOrigin) -> Any:
        try:
            return func()
        except ValidationError as e:
            raise self._invalid_response(origin, e.errors(include_url=False)) from e

    def _parse_one(self, payload: Any, origin: ResponseOrigin) -> Any:
        if self.model is None or payload is None:
            return payload
        return self._validate(lambda: self.model.model_validate(payload), origin)

    def _parse_many(self, payload: Any, origin: ResponseOrigin) -> list[Any]:
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise self._invalid_response(origin, "expected a JSON array")
        if self.model is None:
            return payload
        return self._validate(lambda: [self.model.model_validate(item) for item in payload], origin)

    def _parse_page(self, payload: Any, origin: ResponseOrigin) -> PaginatedResponse[Any]:
        page_model = PaginatedResponse[self.model] if self.model is not None else PaginatedResponse[Any]
        return self._validate(lambda: page_model.model_validate(payload or {}), origin)
