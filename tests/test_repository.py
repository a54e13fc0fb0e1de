"""Tests for the cache-aside repository."""

import asyncio
from decimal import Decimal

import pytest

from conftest import API_URL, http_error, json_response, network_error
from nexora_client.core.config import RepositoryConfig
from nexora_client.core.repository import (
    ErrorKind,
    PaginatedResponse,
    Product,
    Repository,
    RepositoryError,
    Warehouse,
    build_query_items,
    product_repository,
    warehouse_repository,
)

WAREHOUSES = f"{API_URL}/inventory/warehouses"
PRODUCTS = f"{API_URL}/inventory/products"

WAREHOUSE_LIST = [
    {"uuid": "w-1", "code": "PAR", "name": "Paris", "stateProvince": "IDF", "active": True},
    {"uuid": "w-2", "code": "LYS", "name": "Lyon", "active": False},
]


def make_repo(transport, clock, **overrides):
    return warehouse_repository(transport, API_URL, clock=clock, **overrides)


class TestBuildQueryItems:
    def test_empty(self):
        assert build_query_items(None) == []
        assert build_query_items({}) == []

    def test_skips_none_and_flattens(self):
        items = build_query_items({"q": "bolt", "page": 2, "skip": None, "tags": ["a", "b"], "active": True})
        assert items == [("q", "bolt"), ("page", "2"), ("tags", "a"), ("tags", "b"), ("active", "true")]


class TestReads:
    def test_find_all_parses_models(self, transport, clock):
        transport.add("GET", WAREHOUSES, WAREHOUSE_LIST)
        repo = make_repo(transport, clock)

        items = asyncio.run(repo.find_all())

        assert [w.code for w in items] == ["PAR", "LYS"]
        assert isinstance(items[0], Warehouse)
        assert items[0].state_province == "IDF"
        assert items[0].key == "w-1"

    def test_endpoints(self, transport, clock):
        transport.add("GET", f"{WAREHOUSES}/w-1", WAREHOUSE_LIST[0])
        transport.add("GET", f"{WAREHOUSES}/uuid/w-2", WAREHOUSE_LIST[1])
        transport.add("GET", f"{WAREHOUSES}/active", WAREHOUSE_LIST[:1])
        transport.add("GET", f"{WAREHOUSES}/search", WAREHOUSE_LIST[1:])
        repo = make_repo(transport, clock)

        async def scenario():
            return (
                await repo.find_by_id("w-1"),
                await repo.find_by_uuid("w-2"),
                await repo.find_active(),
                await repo.search("lyon"),
            )

        by_id, by_uuid, active, found = asyncio.run(scenario())

        assert by_id.name == "Paris"
        assert by_uuid.name == "Lyon"
        assert [w.code for w in active] == ["PAR"]
        assert [w.code for w in found] == ["LYS"]
        assert list(transport.calls_to("GET", f"{WAREHOUSES}/search")[0].params) == [("q", "lyon")]

    def test_find_all_paginated(self, transport, clock):
        transport.add("GET", f"{PRODUCTS}/paginated", {
            "content": [{"uuid": "p-1", "name": "Bolt", "price": "0.25"}],
            "totalElements": 41,
            "totalPages": 3,
            "size": 20,
            "number": 1,
            "first": False,
            "last": False,
        })
        repo = product_repository(transport, API_URL, clock=clock)

        page = asyncio.run(repo.find_all_paginated(page=1, size=20))

        assert isinstance(page, PaginatedResponse)
        assert page.total_elements == 41
        assert isinstance(page.content[0], Product)
        assert page.content[0].price == Decimal("0.25")
        call = transport.calls_to("GET", f"{PRODUCTS}/paginated")[0]
        assert list(call.params) == [("page", "1"), ("size", "20")]

    def test_raw_payloads_without_model(self, transport, clock):
        config = RepositoryConfig(base_url="inventory/suppliers", entity_name="Supplier")
        url = f"{API_URL}/inventory/suppliers"
        transport.add("GET", url, [{"id": 1}])
        repo = Repository(transport, config, API_URL, clock=clock)

        assert asyncio.run(repo.find_all()) == [{"id": 1}]

    def test_non_list_payload_is_invalid_response(self, transport, clock):
        transport.add("GET", WAREHOUSES, {"unexpected": True})
        repo = make_repo(transport, clock)

        with pytest.raises(RepositoryError) as exc_info:
            asyncio.run(repo.find_all())

        assert exc_info.value.kind is ErrorKind.INVALID_RESPONSE

    def test_invalid_response_reports_get_origin(self, transport, clock):
        transport.add("GET", f"{WAREHOUSES}/w-1", {"uuid": "w-1", "active": {"nested": True}})
        repo = make_repo(transport, clock)

        with pytest.raises(RepositoryError) as exc_info:
            asyncio.run(repo.find_by_id("w-1"))

        error = exc_info.value
        assert error.kind is ErrorKind.INVALID_RESPONSE
        assert error.method == "GET"
        assert error.path == f"{WAREHOUSES}/w-1"
        assert error.status == 200

    def test_invalid_write_response_reports_write_origin(self, transport, clock):
        url = f"{WAREHOUSES}/w-1/activate"
        transport.add("PUT", url, json_response(url, {"uuid": "w-1", "active": {"nested": True}}, status=202))
        repo = make_repo(transport, clock)

        with pytest.raises(RepositoryError) as exc_info:
            asyncio.run(repo.activate("w-1"))

        error = exc_info.value
        assert error.kind is ErrorKind.INVALID_RESPONSE
        assert error.method == "PUT"
        assert error.path == url
        assert error.status == 202


class TestCaching:
    def test_served_from_cache_until_timeout(self, transport, clock):
        transport.add("GET", WAREHOUSES, WAREHOUSE_LIST)
        repo = make_repo(transport, clock, cache_timeout_ms=5000)

        asyncio.run(repo.find_all())
        clock.advance(4)
        asyncio.run(repo.find_all())
        assert len(transport.calls) == 1

        clock.advance(1)
        asyncio.run(repo.find_all())
        assert len(transport.calls) == 2

    def test_params_are_part_of_the_key(self, transport, clock):
        transport.add("GET", WAREHOUSES, WAREHOUSE_LIST)
        repo = make_repo(transport, clock)

        async def scenario():
            await repo.find_all({"city": "Paris"})
            await repo.find_all({"city": "Lyon"})
            await repo.find_all({"city": "Paris"})

        asyncio.run(scenario())

        assert len(transport.calls) == 2

    def test_cache_disabled(self, transport, clock):
        transport.add("GET", WAREHOUSES, WAREHOUSE_LIST)
        repo = make_repo(transport, clock, cache_enabled=False)

        async def scenario():
            await repo.find_all()
            await repo.find_all()

        asyncio.run(scenario())

        assert len(transport.calls) == 2
        assert len(repo.cache) == 0

    @pytest.mark.parametrize("write", ["create", "update", "partial_update", "remove", "activate"])
    def test_successful_write_invalidates(self, transport, clock, write):
        transport.add("GET", WAREHOUSES, WAREHOUSE_LIST)
        transport.add("POST", WAREHOUSES, WAREHOUSE_LIST[0])
        transport.add("PUT", f"{WAREHOUSES}/w-1", WAREHOUSE_LIST[0])
        transport.add("PATCH", f"{WAREHOUSES}/w-1", WAREHOUSE_LIST[0])
        transport.add("DELETE", f"{WAREHOUSES}/w-1", None)
        transport.add("PUT", f"{WAREHOUSES}/w-1/activate", WAREHOUSE_LIST[0])
        repo = make_repo(transport, clock)

        calls = {
            "create": lambda: repo.create({"code": "PAR"}),
            "update": lambda: repo.update("w-1", Warehouse(code="PAR", name="Paris")),
            "partial_update": lambda: repo.partial_update("w-1", {"name": "Paris"}),
            "remove": lambda: repo.remove("w-1"),
            "activate": lambda: repo.activate("w-1"),
        }

        async def scenario():
            await repo.find_all()
            await calls[write]()
            await repo.find_all()

        asyncio.run(scenario())

        assert len(transport.calls_to("GET", WAREHOUSES)) == 2

    def test_failed_write_keeps_cache(self, transport, clock):
        transport.add("GET", WAREHOUSES, WAREHOUSE_LIST)
        transport.add("POST", WAREHOUSES, http_error(WAREHOUSES, 400))
        repo = make_repo(transport, clock, retry_attempts=0)

        async def scenario():
            await repo.find_all()
            with pytest.raises(RepositoryError):
                await repo.create({"code": "PAR"})
            await repo.find_all()

        asyncio.run(scenario())

        assert len(transport.calls_to("GET", WAREHOUSES)) == 1

    def test_model_body_uses_wire_names(self, transport, clock):
        transport.add("PUT", f"{WAREHOUSES}/w-1", WAREHOUSE_LIST[0])
        repo = make_repo(transport, clock)

        asyncio.run(repo.update("w-1", Warehouse(name="Paris", postal_code="75001")))

        body = transport.calls_to("PUT", f"{WAREHOUSES}/w-1")[0].json_data
        assert body == {"name": "Paris", "postalCode": "75001"}

    def test_read_started_before_invalidation_is_not_cached(self, transport, clock):
        release = asyncio.Event()

        async def slow_list(request):
            await release.wait()
            return WAREHOUSE_LIST

        transport.add("GET", WAREHOUSES, slow_list)
        transport.add("POST", WAREHOUSES, WAREHOUSE_LIST[0])
        repo = make_repo(transport, clock)

        async def scenario():
            read = asyncio.ensure_future(repo.find_all())
            await asyncio.sleep(0.01)
            await repo.create({"code": "PAR"})
            release.set()
            await read

        asyncio.run(scenario())

        assert len(repo.cache) == 0

    def test_read_issued_after_write_does_not_join_older_read(self, transport, clock):
        release = asyncio.Event()
        fresh = WAREHOUSE_LIST + [{"uuid": "w-3", "code": "NCE", "name": "Nice"}]

        async def slow_list(request):
            await release.wait()
            return WAREHOUSE_LIST

        transport.add("GET", WAREHOUSES, slow_list, fresh)
        transport.add("POST", WAREHOUSES, fresh[2])
        repo = make_repo(transport, clock)

        async def scenario():
            before = asyncio.ensure_future(repo.find_all())
            await asyncio.sleep(0.01)
            await repo.create({"code": "NCE"})
            after = asyncio.ensure_future(repo.find_all())
            await asyncio.sleep(0.01)
            release.set()
            return await before, await after

        before, after = asyncio.run(scenario())

        assert len(transport.calls_to("GET", WAREHOUSES)) == 2
        assert [w.code for w in before] == ["PAR", "LYS"]
        assert [w.code for w in after] == ["PAR", "LYS", "NCE"]
        assert len(repo.cache) == 1

    def test_read_issued_after_refresh_does_not_join_older_read(self, transport, clock):
        release = asyncio.Event()

        async def slow_list(request):
            await release.wait()
            return WAREHOUSE_LIST

        transport.add("GET", WAREHOUSES, slow_list, WAREHOUSE_LIST[:1])
        repo = make_repo(transport, clock)

        async def scenario():
            before = asyncio.ensure_future(repo.find_all())
            await asyncio.sleep(0.01)
            repo.refresh()
            after = asyncio.ensure_future(repo.find_all())
            await asyncio.sleep(0.01)
            release.set()
            return await before, await after

        before, after = asyncio.run(scenario())

        assert len(transport.calls_to("GET", WAREHOUSES)) == 2
        assert len(before) == 2
        assert [w.code for w in after] == ["PAR"]

    def test_refresh_clears_cache_and_notifies(self, transport, clock):
        transport.add("GET", WAREHOUSES, WAREHOUSE_LIST)
        repo = make_repo(transport, clock)
        seen = []
        subscription = repo.on_refresh(seen.append)

        async def scenario():
            await repo.find_all()
            repo.refresh()
            await repo.find_all()

        asyncio.run(scenario())
        subscription.unsubscribe()
        repo.refresh()

        assert len(transport.calls) == 2
        assert seen == [None]


class TestDeduplication:
    def test_concurrent_identical_reads_share_one_call(self, transport, clock):
        transport.add("GET", WAREHOUSES, WAREHOUSE_LIST)
        repo = make_repo(transport, clock, cache_enabled=False)

        async def scenario():
            return await asyncio.gather(repo.find_all(), repo.find_all(), repo.find_all())

        results = asyncio.run(scenario())

        assert len(transport.calls) == 1
        assert all([w.code for w in r] == ["PAR", "LYS"] for r in results)

    def test_concurrent_callers_share_the_error(self, transport, clock):
        transport.add("GET", WAREHOUSES, http_error(WAREHOUSES, 500))
        repo = make_repo(transport, clock, retry_attempts=0)

        async def scenario():
            return await asyncio.gather(repo.find_all(), repo.find_all(), return_exceptions=True)

        results = asyncio.run(scenario())

        assert len(transport.calls) == 1
        assert all(isinstance(r, RepositoryError) and r.status == 500 for r in results)


class TestRetry:
    def test_succeeds_on_last_attempt(self, transport, clock):
        transport.add(
            "GET", WAREHOUSES,
            network_error(WAREHOUSES),
            http_error(WAREHOUSES, 503),
            network_error(WAREHOUSES),
            WAREHOUSE_LIST,
        )
        repo = make_repo(transport, clock, retry_attempts=3)

        items = asyncio.run(repo.find_all())

        assert len(items) == 2
        assert len(transport.calls) == 4

    def test_gives_up_after_all_attempts(self, transport, clock):
        transport.add("GET", WAREHOUSES, network_error(WAREHOUSES))
        repo = make_repo(transport, clock, retry_attempts=2)

        with pytest.raises(RepositoryError) as exc_info:
            asyncio.run(repo.find_all())

        assert len(transport.calls) == 3
        error = exc_info.value
        assert error.status == 0
        assert error.kind is ErrorKind.NETWORK
        assert error.category == "network"
        assert error.message == "Network error. Please check your connection."

    def test_writes_are_retried_too(self, transport, clock):
        transport.add("POST", WAREHOUSES, http_error(WAREHOUSES, 500), WAREHOUSE_LIST[0])
        repo = make_repo(transport, clock, retry_attempts=1)

        created = asyncio.run(repo.create({"code": "PAR"}))

        assert created.code == "PAR"
        assert len(transport.calls) == 2

    def test_failed_reads_are_not_cached(self, transport, clock):
        transport.add("GET", WAREHOUSES, http_error(WAREHOUSES, 500), WAREHOUSE_LIST)
        repo = make_repo(transport, clock, retry_attempts=0)

        async def scenario():
            with pytest.raises(RepositoryError):
                await repo.find_all()
            return await repo.find_all()

        assert len(asyncio.run(scenario())) == 2


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status,kind,message",
        [
            (400, ErrorKind.INVALID_REQUEST, "Invalid request. Please check your input."),
            (401, ErrorKind.AUTHENTICATION_REQUIRED, "Authentication required. Please log in."),
            (403, ErrorKind.ACCESS_DENIED, "Access denied. You do not have permission."),
            (404, ErrorKind.NOT_FOUND, "Warehouse not found."),
            (409, ErrorKind.CONFLICT, "Conflict. The resource already exists or is in use."),
            (422, ErrorKind.VALIDATION_FAILED, "Validation error. Please check your input."),
            (500, ErrorKind.SERVER_ERROR, "Server error. Please try again later."),
            (503, ErrorKind.UNAVAILABLE, "Service unavailable. Please try again later."),
            (418, ErrorKind.UNKNOWN, "An error occurred while processing Warehouse."),
        ],
    )
    def test_status_to_message(self, transport, clock, status, kind, message):
        url = f"{WAREHOUSES}/w-9"
        transport.add("GET", url, http_error(url, status))
        repo = make_repo(transport, clock, retry_attempts=0)

        with pytest.raises(RepositoryError) as exc_info:
            asyncio.run(repo.find_by_id("w-9"))

        error = exc_info.value
        assert error.status == status
        assert error.kind is kind
        assert error.message == message
        assert error.path == url
        assert error.method == "GET"

    def test_server_message_wins(self, transport, clock):
        body = {"message": "Code PAR is already used", "field": "code"}
        transport.add("POST", WAREHOUSES, http_error(WAREHOUSES, 409, body))
        repo = make_repo(transport, clock, retry_attempts=0)

        with pytest.raises(RepositoryError) as exc_info:
            asyncio.run(repo.create({"code": "PAR"}))

        error = exc_info.value
        assert error.message == "Code PAR is already used"
        assert error.kind is ErrorKind.CONFLICT
        assert error.details == body
        assert error.to_dict()["kind"] == "conflict"

    def test_categories(self):
        assert RepositoryError("x", status=404, path="/").category == "client"
        assert RepositoryError("x", status=502, path="/").category == "server"
        assert RepositoryError("x", status=502, path="/").retryable
        assert not RepositoryError("x", status=400, path="/").retryable
