from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from ledgerhub.apps.api.main import create_app
from ledgerhub.services.keys import generate_key
from ledgerhub.tests.utils.auth import create_member_headers, create_test_api_key, create_test_project


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test")


async def _create_node(client: AsyncClient, project_id: str, headers: dict[str, str], payload: dict) -> dict:
    response = await client.post(f"/v1/projects/{project_id}/issuer-nodes", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.asyncio
async def test_health_is_public_and_enveloped() -> None:
    async with _client() as client:
        response = await client.get("/v1/health")
        assert response.status_code == 200
        body = response.json()
        assert body["data"] == {"status": "ok"}
        assert body["meta"]["api_version"] == "v1"
        assert response.headers["X-Request-Id"] == body["meta"]["request_id"]

        response = await client.get("/health")
        assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_create_canonical_issuer_node_returns_generated_private_keys_once() -> None:
    project_id = await create_test_project()
    editor, _ = await create_member_headers(project_id, "editor")
    external = generate_key().public_key

    async with _client() as client:
        created = await _create_node(
            client,
            project_id,
            editor,
            {"label": "Treasury", "keys": [{"external_key": external}, {"generate": True}], "sigs_required": 2},
        )
        assert created["label"] == "Treasury"
        assert created["project_id"] == project_id
        assert created["sigs_required"] == 2
        external_key, generated_key = created["keys"]
        assert external_key == {"source": "external", "public_key": external}
        assert generated_key["source"] == "generated"
        assert len(generated_key["private_key"]) == 64

        response = await client.get(f"/v1/issuer-nodes/{created['id']}", headers=editor)
        assert response.status_code == 200
        fetched = response.json()["data"]
        assert fetched["keys"][1] == {"source": "generated", "public_key": generated_key["public_key"]}


@pytest.mark.asyncio
async def test_deprecated_payload_is_upgraded() -> None:
    project_id = await create_test_project()
    editor, _ = await create_member_headers(project_id, "editor")
    external = generate_key().public_key

    async with _client() as client:
        created = await _create_node(
            client, project_id, editor, {"label": "Legacy", "xpubs": [external], "generate_key": True}
        )
        assert created["sigs_required"] == 1
        assert [key["source"] for key in created["keys"]] == ["external", "generated"]

        created = await _create_node(
            client, project_id, editor, {"label": "Legacy", "xpubs": [external], "generate_key": False}
        )
        assert [key["source"] for key in created["keys"]] == ["external"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"keys": [{"generate": True}], "sigs_required": 2},
        {"keys": [{"generate": True}], "sigs_required": 0},
        {"keys": [{"generate": True}], "sigs_required": "1"},
        {"keys": [{"external_key": "not-hex"}], "sigs_required": 1},
        # Only raw Ed25519 keys in hex are accepted, for xpubs too.
        {"xpubs": ["xpub661MyMwAqRbcFtXgS5sYJABqqG9YLmC4Q1Rdap9gSE8NqtwybGhePY2gZ29ESFjqJoCu1Rupje8YtGqsefD265TMg7usUDFdp6W1EGMcet8"]},
        {"generate_key": False},
        {"label": "no keys"},
    ],
)
async def test_invalid_creation_payloads_are_rejected(payload: dict) -> None:
    project_id = await create_test_project()
    editor, _ = await create_member_headers(project_id, "editor")

    async with _client() as client:
        response = await client.post(f"/v1/projects/{project_id}/issuer-nodes", json=payload, headers=editor)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

        listing = await client.get(f"/v1/projects/{project_id}/issuer-nodes", headers=editor)
        assert listing.json()["data"]["issuer_nodes"] == []


@pytest.mark.asyncio
async def test_malformed_json_body_is_an_invalid_request() -> None:
    project_id = await create_test_project()
    editor, _ = await create_member_headers(project_id, "editor")

    async with _client() as client:
        response = await client.post(
            f"/v1/projects/{project_id}/issuer-nodes",
            content=b'{"label": ',
            headers={**editor, "Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_duplicate_external_key_conflicts() -> None:
    project_id = await create_test_project()
    editor, _ = await create_member_headers(project_id, "editor")
    external = generate_key().public_key

    async with _client() as client:
        response = await client.post(
            f"/v1/projects/{project_id}/issuer-nodes",
            json={"keys": [{"external_key": external}, {"external_key": external}], "sigs_required": 1},
            headers=editor,
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"


@pytest.mark.asyncio
async def test_reader_cannot_create_even_with_a_broken_body() -> None:
    project_id = await create_test_project()
    reader, _ = await create_member_headers(project_id, "reader")

    async with _client() as client:
        response = await client.post(
            f"/v1/projects/{project_id}/issuer-nodes",
            content=b"{not json",
            headers={**reader, "Content-Type": "application/json"},
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "AUTH_FORBIDDEN"


@pytest.mark.asyncio
async def test_unknown_and_foreign_nodes_are_indistinguishable() -> None:
    project_id = await create_test_project()
    other_project = await create_test_project()
    editor, _ = await create_member_headers(project_id, "editor")
    outsider, _ = await create_member_headers(other_project, "admin")

    async with _client() as client:
        created = await _create_node(client, project_id, editor, {"keys": [{"generate": True}], "sigs_required": 1})

        foreign = await client.get(f"/v1/issuer-nodes/{created['id']}", headers=outsider)
        unknown = await client.get("/v1/issuer-nodes/in_does_not_exist", headers=outsider)
        assert foreign.status_code == unknown.status_code == 403
        assert foreign.json()["error"] == unknown.json()["error"]


@pytest.mark.asyncio
async def test_authentication_is_required() -> None:
    project_id = await create_test_project()
    _raw, revoked, _user_id, _key_id = await create_test_api_key(key_revoked=True)

    async with _client() as client:
        response = await client.get(f"/v1/projects/{project_id}/issuer-nodes")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_UNAUTHORIZED"

        response = await client.get(f"/v1/projects/{project_id}/issuer-nodes", headers=revoked)
        assert response.status_code == 401

        response = await client.get(
            f"/v1/projects/{project_id}/issuer-nodes", headers={"Authorization": "Bearer lhk_bogus"}
        )
        assert response.status_code == 401

        # Well formed, but no such key.
        forged = f"lhk_{'0' * 32}_{'x' * 43}"
        response = await client.get(
            f"/v1/projects/{project_id}/issuer-nodes", headers={"Authorization": f"Bearer {forged}"}
        )
        assert response.status_code == 401


@pytest.mark.asyncio
async def test_update_and_delete_follow_role_ordering() -> None:
    project_id = await create_test_project()
    reader, _ = await create_member_headers(project_id, "reader")
    editor, _ = await create_member_headers(project_id, "editor")
    admin, _ = await create_member_headers(project_id, "admin")

    async with _client() as client:
        node = await _create_node(client, project_id, editor, {"label": "Old", "keys": [{"generate": True}], "sigs_required": 1})
        path = f"/v1/issuer-nodes/{node['id']}"

        response = await client.put(path, json={"label": "New"}, headers=reader)
        assert response.status_code == 403

        response = await client.put(path, json={"label": "New"}, headers=editor)
        assert response.status_code == 204
        assert response.content == b""

        response = await client.put(path, json={"label": None}, headers=editor)
        assert response.status_code == 204
        assert (await client.get(path, headers=reader)).json()["data"]["label"] == "New"

        response = await client.delete(path, headers=editor)
        assert response.status_code == 403

        response = await client.delete(path, headers=admin)
        assert response.status_code == 204

        # Archived nodes vanish from reads and listings.
        response = await client.get(path, headers=admin)
        assert response.status_code == 403
        listing = await client.get(f"/v1/projects/{project_id}/issuer-nodes", headers=admin)
        assert listing.json()["data"]["issuer_nodes"] == []


@pytest.mark.asyncio
async def test_list_issuer_nodes_pages_in_creation_order() -> None:
    project_id = await create_test_project()
    editor, _ = await create_member_headers(project_id, "editor")

    async with _client() as client:
        created = [
            (await _create_node(client, project_id, editor, {"label": f"n{i}", "keys": [{"generate": True}], "sigs_required": 1}))["id"]
            for i in range(5)
        ]

        seen: list[str] = []
        cursor = None
        while True:
            params = {"pageSize": 2}
            if cursor:
                params["cursor"] = cursor
            response = await client.get(f"/v1/projects/{project_id}/issuer-nodes", params=params, headers=editor)
            assert response.status_code == 200
            page = response.json()["data"]
            assert len(page["issuer_nodes"]) <= 2
            assert all("private_key" not in key for item in page["issuer_nodes"] for key in item["keys"])
            seen.extend(item["id"] for item in page["issuer_nodes"])
            cursor = page["last"]
            if cursor is None:
                break
        assert seen == created

        # Deprecated parameter names still work.
        response = await client.get(f"/v1/projects/{project_id}/issuer-nodes", params={"limit": 1}, headers=editor)
        legacy = response.json()["data"]
        assert [item["id"] for item in legacy["issuer_nodes"]] == created[:1]
        response = await client.get(
            f"/v1/projects/{project_id}/issuer-nodes",
            params={"limit": 1, "prev": legacy["last"]},
            headers=editor,
        )
        assert [item["id"] for item in response.json()["data"]["issuer_nodes"]] == created[1:2]


@pytest.mark.asyncio
async def test_bad_paging_parameters_are_invalid_requests() -> None:
    project_id = await create_test_project()
    reader, _ = await create_member_headers(project_id, "reader")

    async with _client() as client:
        response = await client.get(f"/v1/projects/{project_id}/issuer-nodes", params={"pageSize": 0}, headers=reader)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

        response = await client.get(
            f"/v1/projects/{project_id}/issuer-nodes", params={"cursor": "forged.cursor"}, headers=reader
        )
        assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("param", ["pageSize", "limit"])
async def test_non_integer_page_size_is_an_invalid_request(param: str) -> None:
    project_id = await create_test_project()
    reader, _ = await create_member_headers(project_id, "reader")
    outsider, _ = await create_member_headers(await create_test_project(), "admin")

    async with _client() as client:
        response = await client.get(f"/v1/projects/{project_id}/issuer-nodes", params={param: "abc"}, headers=reader)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

        # Authorization still comes first.
        response = await client.get(f"/v1/projects/{project_id}/issuer-nodes", params={param: "abc"}, headers=outsider)
        assert response.status_code == 403


@pytest.mark.asyncio
async def test_node_activity_records_creation_and_updates_newest_first() -> None:
    project_id = await create_test_project()
    editor, _ = await create_member_headers(project_id, "editor")

    async with _client() as client:
        node = await _create_node(client, project_id, editor, {"label": "A", "keys": [{"generate": True}], "sigs_required": 1})
        await client.put(f"/v1/issuer-nodes/{node['id']}", json={"label": "B"}, headers=editor)

        response = await client.get(f"/v1/issuer-nodes/{node['id']}/activity", headers=editor)
        assert response.status_code == 200
        kinds = [item["kind"] for item in response.json()["data"]["activities"]]
        assert kinds == ["issuer_node.updated", "issuer_node.created"]


@pytest.mark.asyncio
async def test_unversioned_routes_return_bare_bodies() -> None:
    project_id = await create_test_project()
    editor, _ = await create_member_headers(project_id, "editor")

    async with _client() as client:
        response = await client.post(
            f"/projects/{project_id}/issuer-nodes",
            json={"keys": [{"generate": True}], "sigs_required": 1},
            headers=editor,
        )
        assert response.status_code == 201
        body = response.json()
        assert "data" not in body
        assert body["project_id"] == project_id

        response = await client.get("/issuer-nodes/in_missing", headers=editor)
        assert response.status_code == 403
        assert response.json() == {"detail": {"code": "AUTH_FORBIDDEN", "message": "Not authorized for this resource"}}
