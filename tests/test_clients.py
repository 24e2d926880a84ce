import pytest
import respx
from httpx import Response
from keyseed.clients.base import BaseHTTPClient, PermanentHTTPError, RetryableHTTPError
from keyseed.clients.identity import IdentityClient
from keyseed.config import Settings
from keyseed.errors import DirectoryError, EntityExistsError
from keyseed.models import EntityKind, EntitySpec
from keyseed.resolver import IdempotentResolver

BASE = "https://identity.example.com"


def make_client(**kwargs):
    kwargs.setdefault("backoff_factor", 0)
    return IdentityClient(BASE, "admin-token", **kwargs)


@pytest.mark.asyncio
async def test_find_project_by_name_and_domain():
    client = make_client()

    with respx.mock:
        route = respx.get(f"{BASE}/v3/projects").mock(
            return_value=Response(200, json={"projects": [{"id": "p-123", "name": "demo"}]})
        )

        project_id = await client.find(EntityKind.PROJECT, {"name": "demo", "domain": "default"})

        assert project_id == "p-123"
        request = route.calls.last.request
        assert request.url.params["name"] == "demo"
        assert request.url.params["domain_id"] == "default"
        assert request.headers["X-Auth-Token"] == "admin-token"


@pytest.mark.asyncio
async def test_find_returns_none_when_absent():
    client = make_client()

    with respx.mock:
        respx.get(f"{BASE}/v3/roles").mock(return_value=Response(200, json={"roles": []}))

        assert await client.find(EntityKind.ROLE, {"name": "reader"}) is None


@pytest.mark.asyncio
async def test_ambiguous_lookup_is_error():
    client = make_client()

    with respx.mock:
        respx.get(f"{BASE}/v3/roles").mock(
            return_value=Response(200, json={"roles": [{"id": "r1"}, {"id": "r2"}]})
        )

        with pytest.raises(DirectoryError, match="Ambiguous"):
            await client.find(EntityKind.ROLE, {"name": "member"})


@pytest.mark.asyncio
async def test_create_user_sends_attributes():
    client = make_client()

    with respx.mock:
        route = respx.post(f"{BASE}/v3/users").mock(
            return_value=Response(201, json={"user": {"id": "u-1"}})
        )

        user_id = await client.create(
            EntityKind.USER,
            {"name": "demo", "domain": "default"},
            {"password": "secret", "email": "demo@example.com"},
        )

        assert user_id == "u-1"
        body = route.calls.last.request.read()
        assert b'"domain_id":"default"' in body.replace(b" ", b"")
        assert b'"email":"demo@example.com"' in body.replace(b" ", b"")


@pytest.mark.asyncio
async def test_create_conflict_maps_to_entity_exists():
    client = make_client()

    with respx.mock:
        respx.post(f"{BASE}/v3/projects").mock(return_value=Response(409))

        with pytest.raises(EntityExistsError):
            await client.create(EntityKind.PROJECT, {"name": "demo", "domain": "default"}, {})


@pytest.mark.asyncio
async def test_bad_request_is_directory_error_without_retry():
    client = make_client()

    with respx.mock:
        route = respx.post(f"{BASE}/v3/users").mock(return_value=Response(400))

        with pytest.raises(DirectoryError) as exc_info:
            await client.create(EntityKind.USER, {"name": "x", "domain": "default"}, {})

        assert exc_info.value.details["status"] == 400
        assert route.call_count == 1


@pytest.mark.asyncio
async def test_retry_on_503():
    client = make_client(max_retries=3)

    with respx.mock:
        route = respx.get(f"{BASE}/v3/domains")
        route.side_effect = [
            Response(503),
            Response(200, json={"domains": [{"id": "d-1"}]}),
        ]

        assert await client.find(EntityKind.DOMAIN, {"name": "service_domain"}) == "d-1"
        assert route.call_count == 2


@pytest.mark.asyncio
async def test_unavailable_after_retries():
    client = make_client(max_retries=2)

    with respx.mock:
        route = respx.get(f"{BASE}/v3/domains").mock(return_value=Response(503))

        with pytest.raises(DirectoryError, match="unavailable"):
            await client.find(EntityKind.DOMAIN, {"name": "service_domain"})

        assert route.call_count == 2


@pytest.mark.asyncio
async def test_circuit_opens_after_failures():
    client = make_client(max_retries=1, circuit_failure_threshold=1)

    with respx.mock:
        route = respx.get(f"{BASE}/v3/domains").mock(return_value=Response(503))

        with pytest.raises(DirectoryError, match="unavailable"):
            await client.find(EntityKind.DOMAIN, {"name": "service_domain"})
        with pytest.raises(DirectoryError, match="circuit open"):
            await client.find(EntityKind.DOMAIN, {"name": "service_domain"})

        assert route.call_count == 1


@pytest.mark.asyncio
async def test_group_membership():
    client = make_client()
    path = f"{BASE}/v3/groups/g-1/users/u-1"
    key = {"group": "g-1", "user": "u-1"}

    with respx.mock:
        respx.head(path).mock(return_value=Response(404))
        put = respx.put(path).mock(return_value=Response(204))

        assert await client.find(EntityKind.GROUP_MEMBERSHIP, key) is None
        assert await client.create(EntityKind.GROUP_MEMBERSHIP, key, {}) == "g-1:u-1"
        assert put.call_count == 1


@pytest.mark.asyncio
async def test_role_assignment_paths():
    client = make_client()
    project_key = {"role": "r-1", "user": "u-1", "project": "p-1"}
    system_key = {"role": "r-1", "group": "g-1", "system": "all"}

    with respx.mock:
        project_put = respx.put(f"{BASE}/v3/projects/p-1/users/u-1/roles/r-1").mock(
            return_value=Response(204)
        )
        system_put = respx.put(f"{BASE}/v3/system/groups/g-1/roles/r-1").mock(
            return_value=Response(204)
        )

        assert await client.create(EntityKind.ROLE_ASSIGNMENT, project_key, {}) == "r-1@u-1:project/p-1"
        assert await client.create(EntityKind.ROLE_ASSIGNMENT, system_key, {}) == "r-1@g-1:system/all"
        assert project_put.call_count == 1
        assert system_put.call_count == 1


@pytest.mark.asyncio
async def test_find_role_assignment():
    client = make_client()

    with respx.mock:
        route = respx.get(f"{BASE}/v3/role_assignments").mock(
            return_value=Response(200, json={"role_assignments": [{"role": {"id": "r-1"}}]})
        )

        found = await client.find(
            EntityKind.ROLE_ASSIGNMENT, {"role": "r-1", "user": "u-1", "system": "all"}
        )

        assert found == "r-1@u-1:system/all"
        params = route.calls.last.request.url.params
        assert params["user.id"] == "u-1"
        assert params["scope.system"] == "all"


@pytest.mark.asyncio
async def test_resolver_over_identity_client_handles_conflict():
    resolver = IdempotentResolver(make_client())
    spec = EntitySpec(EntityKind.ROLE, {"name": "member"})

    with respx.mock:
        respx.get(f"{BASE}/v3/roles").side_effect = [
            Response(200, json={"roles": []}),
            Response(200, json={"roles": [{"id": "r-winner"}]}),
        ]
        respx.post(f"{BASE}/v3/roles").mock(return_value=Response(409))

        assert await resolver.resolve(spec) == "r-winner"


def test_from_settings():
    settings = Settings(_env_file=None, identity_url=f"{BASE}/", identity_token="tok")

    client = IdentityClient.from_settings(settings)

    assert client._base_url == BASE
    assert client._headers()["X-Auth-Token"] == "tok"


@pytest.mark.asyncio
async def test_base_client_error_types():
    client = BaseHTTPClient(BASE, max_retries=1, backoff_factor=0)

    with respx.mock:
        respx.get(f"{BASE}/missing").mock(return_value=Response(404))
        respx.get(f"{BASE}/busy").mock(return_value=Response(429))

        with pytest.raises(PermanentHTTPError) as exc_info:
            await client.get("/missing")
        assert exc_info.value.status_code == 404

        with pytest.raises(RetryableHTTPError):
            await client.get("/busy")
