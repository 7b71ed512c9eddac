"""Unit tests for the WebDAV surface."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING

import pytest

from share_service.routers.webdav import build_multistatus
from share_service.services.directory import FileInfo
from tests.factories import OTHER_OWNER, OWNER, make_item

if TYPE_CHECKING:
    from fastapi.testclient import TestClient

    from share_service.services.local import LocalStorage

AUTH = ("anyone", OWNER)
OTHER_AUTH = ("anyone", OTHER_OWNER)
DAV = "{DAV:}"

LOCK_BODY = b"""<?xml version="1.0" encoding="utf-8"?>
<D:lockinfo xmlns:D="DAV:">
  <D:lockscope><D:exclusive/></D:lockscope>
  <D:locktype><D:write/></D:locktype>
  <D:owner>finder</D:owner>
</D:lockinfo>"""


@pytest.fixture
def max_file_size() -> str:
    return "16B"


def _hrefs(body: bytes) -> list[str]:
    root = ET.fromstring(body)
    return [href.text or "" for href in root.iter(f"{DAV}href")]


@pytest.mark.unit
class TestAuthentication:
    def test_missing_credentials(self, dav_client: TestClient) -> None:
        response = dav_client.request("PROPFIND", "/webdav/")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == 'Basic realm="share"'

    def test_wrong_password(self, dav_client: TestClient) -> None:
        response = dav_client.request("PROPFIND", "/webdav/", auth=("anyone", "wrong"))

        assert response.status_code == 401


@pytest.mark.unit
class TestOptions:
    def test_advertises_dav(self, dav_client: TestClient) -> None:
        response = dav_client.options("/webdav/", auth=AUTH)

        assert response.status_code == 200
        assert response.headers["dav"] == "1, 2"
        assert "PROPFIND" in response.headers["allow"]


@pytest.mark.unit
class TestPropfind:
    def test_root_lists_own_items(self, dav_client: TestClient, local_storage: LocalStorage) -> None:
        local_storage.put("a1", b"hello", make_item(item_id="a1", filename="a.txt"))
        local_storage.put("b1", b"x", make_item(item_id="b1", filename="b.txt", owner_token=OTHER_OWNER))

        response = dav_client.request("PROPFIND", "/webdav/", headers={"Depth": "1"}, auth=AUTH)

        assert response.status_code == 207
        assert _hrefs(response.content) == ["/webdav/", "/webdav/a.txt"]

    def test_depth_zero(self, dav_client: TestClient, local_storage: LocalStorage) -> None:
        local_storage.put("a1", b"hello", make_item(item_id="a1", filename="a.txt"))

        response = dav_client.request("PROPFIND", "/webdav", headers={"Depth": "0"}, auth=AUTH)

        assert _hrefs(response.content) == ["/webdav/"]

    def test_file(self, dav_client: TestClient, local_storage: LocalStorage) -> None:
        local_storage.put("a1", b"hello", make_item(item_id="a1", filename="a.txt"))

        response = dav_client.request("PROPFIND", "/webdav/a.txt", headers={"Depth": "0"}, auth=AUTH)

        root = ET.fromstring(response.content)
        assert root.find(f".//{DAV}getcontentlength").text == "5"  # type: ignore[union-attr]
        assert root.find(f".//{DAV}getcontenttype").text == "text/plain"  # type: ignore[union-attr]

    def test_missing(self, dav_client: TestClient) -> None:
        response = dav_client.request("PROPFIND", "/webdav/nope.txt", auth=AUTH)

        assert response.status_code == 404

    def test_multistatus_marks_collections(self) -> None:
        body = build_multistatus([FileInfo.root()])

        root = ET.fromstring(body)
        assert root.find(f".//{DAV}resourcetype/{DAV}collection") is not None


@pytest.mark.unit
class TestGet:
    def test_get_file(self, dav_client: TestClient, local_storage: LocalStorage) -> None:
        local_storage.put("a1", b"hello", make_item(item_id="a1", filename="a.txt"))

        response = dav_client.get("/webdav/a.txt", auth=AUTH)

        assert response.status_code == 200
        assert response.content == b"hello"
        assert "last-modified" in response.headers

    def test_head_file(self, dav_client: TestClient, local_storage: LocalStorage) -> None:
        local_storage.put("a1", b"hello", make_item(item_id="a1", filename="a.txt"))

        response = dav_client.head("/webdav/a.txt", auth=AUTH)

        assert response.status_code == 200
        assert response.headers["content-length"] == "5"

    def test_get_root(self, dav_client: TestClient) -> None:
        assert dav_client.get("/webdav/", auth=AUTH).status_code == 405

    def test_foreign_file_is_invisible(self, dav_client: TestClient, local_storage: LocalStorage) -> None:
        local_storage.put("b1", b"x", make_item(item_id="b1", filename="b.txt", owner_token=OTHER_OWNER))

        assert dav_client.get("/webdav/b.txt", auth=AUTH).status_code == 404


@pytest.mark.unit
class TestPut:
    def test_put_creates_item(self, dav_client: TestClient, local_storage: LocalStorage) -> None:
        response = dav_client.put("/webdav/notes.md", content=b"# hi", auth=AUTH)

        assert response.status_code == 201
        items = local_storage.list(OWNER)
        assert len(items) == 1
        assert items[0].filename == "notes.md"
        assert items[0].content_type == "text/markdown"
        assert items[0].size == 4

    def test_put_same_name_adds_new_item(self, dav_client: TestClient, local_storage: LocalStorage) -> None:
        dav_client.put("/webdav/a.txt", content=b"one", auth=AUTH)
        dav_client.put("/webdav/a.txt", content=b"three", auth=AUTH)

        assert len(local_storage.list(OWNER)) == 2
        assert dav_client.get("/webdav/a.txt", auth=AUTH).content == b"three"

    def test_put_too_large(self, dav_client: TestClient, local_storage: LocalStorage) -> None:
        response = dav_client.put("/webdav/big.bin", content=b"x" * 17, auth=AUTH)

        assert response.status_code == 413
        assert local_storage.list(OWNER) == []

    def test_put_root(self, dav_client: TestClient) -> None:
        assert dav_client.put("/webdav/", content=b"x", auth=AUTH).status_code == 405


@pytest.mark.unit
class TestDelete:
    def test_delete(self, dav_client: TestClient, local_storage: LocalStorage) -> None:
        local_storage.put("a1", b"hello", make_item(item_id="a1", filename="a.txt"))

        response = dav_client.delete("/webdav/a.txt", auth=AUTH)

        assert response.status_code == 204
        assert local_storage.list(OWNER) == []

    def test_delete_root(self, dav_client: TestClient) -> None:
        assert dav_client.delete("/webdav/", auth=AUTH).status_code == 403

    def test_delete_missing(self, dav_client: TestClient) -> None:
        assert dav_client.delete("/webdav/nope.txt", auth=AUTH).status_code == 404


@pytest.mark.unit
class TestUnsupported:
    def test_mkcol(self, dav_client: TestClient) -> None:
        assert dav_client.request("MKCOL", "/webdav/sub", auth=AUTH).status_code == 403

    def test_move(self, dav_client: TestClient, local_storage: LocalStorage) -> None:
        local_storage.put("a1", b"hello", make_item(item_id="a1", filename="a.txt"))

        response = dav_client.request(
            "MOVE", "/webdav/a.txt", headers={"Destination": "/webdav/b.txt"}, auth=AUTH
        )

        assert response.status_code == 403


@pytest.mark.unit
class TestLocking:
    def _lock(self, dav_client: TestClient, path: str) -> str:
        response = dav_client.request("LOCK", path, content=LOCK_BODY, auth=AUTH)
        assert response.status_code == 200
        return response.headers["lock-token"].strip("<>")

    def test_lock_response(self, dav_client: TestClient) -> None:
        response = dav_client.request("LOCK", "/webdav/a.txt", content=LOCK_BODY, auth=AUTH)

        root = ET.fromstring(response.content)
        assert root.find(f".//{DAV}owner").text == "finder"  # type: ignore[union-attr]
        assert response.headers["lock-token"].startswith("<urn:uuid:")

    def test_locked_put_needs_token(self, dav_client: TestClient) -> None:
        token = self._lock(dav_client, "/webdav/a.txt")

        refused = dav_client.put("/webdav/a.txt", content=b"x", auth=AUTH)
        accepted = dav_client.put(
            "/webdav/a.txt", content=b"x", headers={"If": f"(<{token}>)"}, auth=AUTH
        )

        assert refused.status_code == 423
        assert accepted.status_code == 201

    def test_second_lock_is_refused(self, dav_client: TestClient) -> None:
        self._lock(dav_client, "/webdav/a.txt")

        response = dav_client.request("LOCK", "/webdav/a.txt", content=LOCK_BODY, auth=AUTH)

        assert response.status_code == 423

    def test_refresh(self, dav_client: TestClient) -> None:
        token = self._lock(dav_client, "/webdav/a.txt")

        response = dav_client.request(
            "LOCK", "/webdav/a.txt", headers={"If": f"(<{token}>)", "Timeout": "Second-60"}, auth=AUTH
        )

        assert response.status_code == 200
        assert b"Second-60" in response.content

    def test_refresh_with_tagged_list(self, dav_client: TestClient) -> None:
        token = self._lock(dav_client, "/webdav/a.txt")

        response = dav_client.request(
            "LOCK",
            "/webdav/a.txt",
            headers={"If": f"<http://testserver/webdav/a.txt> (<{token}>)", "Timeout": "Second-60"},
            auth=AUTH,
        )

        assert response.status_code == 200
        assert response.headers["lock-token"] == f"<{token}>"

    def test_put_with_tagged_list(self, dav_client: TestClient) -> None:
        token = self._lock(dav_client, "/webdav/a.txt")

        response = dav_client.put(
            "/webdav/a.txt",
            content=b"x",
            headers={"If": f"<http://testserver/webdav/a.txt> (<{token}>)"},
            auth=AUTH,
        )

        assert response.status_code == 201

    def test_lock_does_not_cross_owners(self, dav_client: TestClient) -> None:
        self._lock(dav_client, "/webdav/a.txt")

        put = dav_client.put("/webdav/a.txt", content=b"x", auth=OTHER_AUTH)
        lock = dav_client.request("LOCK", "/webdav/a.txt", content=LOCK_BODY, auth=OTHER_AUTH)

        assert put.status_code == 201
        assert lock.status_code == 200

    def test_other_owner_cannot_use_token(self, dav_client: TestClient) -> None:
        token = self._lock(dav_client, "/webdav/a.txt")

        response = dav_client.request(
            "UNLOCK", "/webdav/a.txt", headers={"Lock-Token": f"<{token}>"}, auth=OTHER_AUTH
        )

        assert response.status_code == 409
        assert dav_client.put("/webdav/a.txt", content=b"x", auth=AUTH).status_code == 423

    def test_refresh_unknown_token(self, dav_client: TestClient) -> None:
        response = dav_client.request("LOCK", "/webdav/a.txt", headers={"If": "(<urn:uuid:nope>)"}, auth=AUTH)

        assert response.status_code == 412

    def test_unlock(self, dav_client: TestClient) -> None:
        token = self._lock(dav_client, "/webdav/a.txt")

        response = dav_client.request("UNLOCK", "/webdav/a.txt", headers={"Lock-Token": f"<{token}>"}, auth=AUTH)

        assert response.status_code == 204
        assert dav_client.put("/webdav/a.txt", content=b"x", auth=AUTH).status_code == 201

    def test_unlock_without_token(self, dav_client: TestClient) -> None:
        assert dav_client.request("UNLOCK", "/webdav/a.txt", auth=AUTH).status_code == 400
