"""Test the configuration-driven REST adapter end to end over a mock transport."""
import httpx
import pytest

from adapters.generic_rest import GenericRESTAdapter, GenericRESTConnectionConfig
from possync.config import FrameworkConfig, PaginationSettings
from possync.errors import ErrorCode, POSAdapterError
from possync.integrations import ConnectionConfig, RestService

DEPARTMENTS = [
    {"id": "10", "name": "Beer"},
    {"id": "20", "name": "Snacks"},
    {"id": "30"},
    {"id": "40", "name": "Lottery"},
    {"id": "50", "name": "Tobacco"},
]

DEPARTMENT_MAPPING = {
    "endpoint": "/v1/departments",
    "array_path": "$.data",
    "fields": {
        "pos_code": {"path": "$.id", "required": True},
        "display_name": {"path": "$.name", "required": True},
    },
}


def make_adapter(handler, settings=None):
    sleeps = []

    async def sleep(seconds):
        sleeps.append(seconds)

    service = RestService(
        settings=settings,
        transport=httpx.MockTransport(handler),
        sleep=sleep,
        random_unit=lambda: 0.5,
    )
    return GenericRESTAdapter(service=service), sleeps


def make_config(rate_limit=None, **mappings):
    return GenericRESTConnectionConfig.model_validate({
        "host": "pos.example.com",
        "credentials": {"type": "api_key", "api_key": "k-123"},
        "default_headers": {"X-Merchant": "M1"},
        "mappings": mappings,
        "rate_limit": rate_limit,
    })


def departments_handler(requests):
    def handler(request):
        requests.append(request)
        offset = int(request.url.params.get("offset", 0))
        limit = int(request.url.params.get("limit", len(DEPARTMENTS)))
        return httpx.Response(200, json={"data": DEPARTMENTS[offset:offset + limit]})

    return handler


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_sync_departments_paginates_and_counts_skips():
    requests = []
    adapter, _ = make_adapter(departments_handler(requests))
    config = make_config(departments={**DEPARTMENT_MAPPING, "pagination": {"type": "offset", "page_size": 2}})

    result = await adapter.sync_departments(config)

    assert result.success
    assert [d.pos_code for d in result.records] == ["10", "20", "40", "50"]
    assert result.skipped == 1
    assert result.records[0].minimum_age == 21
    assert result.records[2].is_lottery
    assert [r.url.params["offset"] for r in requests] == ["0", "2", "4"]
    assert requests[0].headers["x-api-key"] == "k-123"
    assert requests[0].headers["x-merchant"] == "M1"


@pytest.mark.asyncio
async def test_unpaginated_sync_is_capped_by_settings():
    settings = FrameworkConfig(pagination=PaginationSettings(max_items=2))
    adapter, _ = make_adapter(departments_handler([]), settings=settings)
    result = await adapter.sync_departments(make_config(departments=DEPARTMENT_MAPPING))
    assert len(result.records) == 2


@pytest.mark.asyncio
async def test_missing_entity_mapping_returns_empty_result():
    adapter, _ = make_adapter(departments_handler([]))
    result = await adapter.sync_cashiers(make_config(departments=DEPARTMENT_MAPPING))
    assert result.success
    assert result.records == []


@pytest.mark.asyncio
async def test_tax_rates_use_percentage_transform():
    def handler(request):
        return httpx.Response(200, json={"taxes": [{"code": "ST", "label": "State", "pct": "8.25"}]})

    adapter, _ = make_adapter(handler)
    config = make_config(tax_rates={
        "endpoint": "/taxes",
        "array_path": "$.taxes",
        "fields": {
            "pos_code": "$.code",
            "display_name": "$.label",
            "rate": {"path": "$.pct", "transform": "percentage_to_decimal"},
        },
    })
    result = await adapter.sync_tax_rates(config)
    assert result.records[0].rate == pytest.approx(0.0825)


@pytest.mark.asyncio
async def test_runtime_failure_is_folded_into_result():
    calls = 0

    def handler(request):
        nonlocal calls
        calls += 1
        return httpx.Response(503, json={"message": "maintenance window"})

    adapter, sleeps = make_adapter(handler)
    result = await adapter.sync_departments(make_config(departments=DEPARTMENT_MAPPING))

    assert not result.success
    assert result.errors[0].code == "HTTP_503"
    assert result.errors[0].message == "maintenance window"
    assert calls == 4
    assert sleeps == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_missing_mappings_raise():
    adapter, _ = make_adapter(departments_handler([]))
    with pytest.raises(POSAdapterError) as info:
        await adapter.sync_departments(GenericRESTConnectionConfig(host="pos.example.com"))
    assert info.value.error_code == ErrorCode.MISSING_MAPPINGS.value

    with pytest.raises(POSAdapterError, match="mappings are required"):
        await adapter.test_connection(ConnectionConfig(host="pos.example.com"))


# ---------------------------------------------------------------------------
# Connection test
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_connection_without_entity_mappings():
    adapter, _ = make_adapter(departments_handler([]))
    result = await adapter.test_connection(make_config())
    assert not result.success
    assert result.error_code == ErrorCode.NO_MAPPINGS.value


@pytest.mark.asyncio
async def test_connection_defaults_to_first_entity_endpoint():
    requests = []
    adapter, _ = make_adapter(departments_handler(requests))
    result = await adapter.test_connection(make_config(departments=DEPARTMENT_MAPPING))
    assert result.success
    assert result.version == "Generic REST Adapter v1"
    assert requests[0].url.path == "/v1/departments"


def probe_handler(request):
    if request.url.path == "/health":
        return httpx.Response(200, json={"status": {"state": "ok"}})
    return httpx.Response(404, json={"message": "not found"})


@pytest.mark.asyncio
@pytest.mark.parametrize("probe,code", [
    ({"endpoint": "/health", "success_path": "$.status.state", "expected_value": "ok"}, None),
    ({"endpoint": "/health", "expected_status": 204}, ErrorCode.CONNECTION_TEST_STATUS_MISMATCH.value),
    ({"endpoint": "/health", "success_path": "$.status.missing"}, ErrorCode.CONNECTION_TEST_PATH_FAILED.value),
    ({"endpoint": "/health", "success_path": "$.status.state", "expected_value": "up"},
     ErrorCode.CONNECTION_TEST_VALUE_MISMATCH.value),
    ({"endpoint": "/nope"}, "HTTP_404"),
])
async def test_connection_probe_outcomes(probe, code):
    adapter, _ = make_adapter(probe_handler)
    result = await adapter.test_connection(make_config(departments=DEPARTMENT_MAPPING, connection_test=probe))
    assert result.success is (code is None)
    assert result.error_code == code


@pytest.mark.asyncio
async def test_connection_reports_transport_failure():
    def handler(request):
        raise httpx.ConnectError("[Errno -2] Name or service not known", request=request)

    adapter, _ = make_adapter(handler)
    result = await adapter.test_connection(make_config(departments=DEPARTMENT_MAPPING))
    assert not result.success
    assert result.error_code == ErrorCode.HOST_NOT_FOUND.value


@pytest.mark.asyncio
async def test_rate_limit_override_is_applied():
    adapter, _ = make_adapter(departments_handler([]))
    config = make_config(rate_limit={"max_requests": 5, "window_seconds": 1.0}, departments=DEPARTMENT_MAPPING)
    await adapter.test_connection(config)
    assert adapter.service.rate_limiter.policy_for("pos.example.com").max_requests == 5


def test_capabilities():
    caps = GenericRESTAdapter(service=RestService()).capabilities()
    assert caps.sync_departments and caps.sync_tax_rates
    assert not caps.webhook_support
