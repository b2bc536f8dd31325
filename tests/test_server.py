# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tfcmesh/tests/test_server.py

import io

import pytest

from conftest import make_config, wait_until
from tfcmesh.agent import Agent
from tfcmesh.catalog.filesystem import FilesystemCatalog
from tfcmesh.config import CatalogConfig
from tfcmesh.core.pipeline import Stage
from tfcmesh.errors import TransferError
from tfcmesh.server.app import create_app
from tfcmesh.utils.hashing import hash_bytes


def _collection(agent, **kwargs):
    request = {"dataset": "/a/b/c", "srcUrl": agent.url, "dstUrl": "http://dst:8989"}
    request.update(kwargs)
    return {"ts": 1, "data": [request]}


@pytest.fixture
def agent(tmp_path):
    # dispatcher not started: submitted requests stay pending
    a = Agent(make_config(tmp_path, "T1", url="http://t1:8989", queue_size=2,
                          central=str(tmp_path / "central")))
    a.registry.add(a.name, a.url)
    yield a
    a.catalog.close()


@pytest.fixture
def client(agent):
    app = create_app(agent)
    app.testing = True
    return app.test_client()


class TestStatusEndpoints:
    def test_status(self, client, agent):
        data = client.get("/status").get_json()

        assert data["name"] == "T1"
        assert data["url"] == "http://t1:8989"
        assert data["catalog"] == "sqlite3"
        assert data["agents"] == {"T1": "http://t1:8989"}
        assert "totalBytes" in data["metrics"]

    def test_agents(self, client):
        assert client.get("/agents").get_json() == {"T1": "http://t1:8989"}


class TestRegister:
    def test_register_and_conflict(self, client):
        ok = client.post("/register", json={"Agent": "http://t2:8989", "Alias": "T2"})
        conflict = client.post("/register", json={"Agent": "http://elsewhere", "Alias": "T2"})

        assert ok.status_code == 200
        assert conflict.status_code == 409
        assert client.get("/agents").get_json()["T2"] == "http://t2:8989"

    def test_malformed(self, client):
        assert client.post("/register", json={"Alias": "T2"}).status_code == 400
        assert client.post("/register", data="not json", content_type="application/json").status_code == 400


class TestCatalogEndpoints:
    def test_post_and_query(self, client, entries):
        resp = client.post("/tfc", json=[e.to_wire() for e in entries])
        assert resp.status_code == 200

        records = client.get("/tfc", query_string={"dataset": "/a/b/c"}).get_json()
        assert [r["lfn"] for r in records] == ["/a/b/c/f1", "/a/b/c/f2"]
        assert records[0]["bytes"] == 100
        assert records[0]["hash"] == "h1"
        assert client.get("/files", query_string={"pattern": "*.root"}).get_json() == ["/x/y/z/f3.root"]

    def test_post_malformed(self, client):
        assert client.post("/tfc", json=[{"pfn": "/no/lfn"}]).status_code == 400

    def test_transfers(self, client, entries):
        client.post("/tfc", json=[e.to_wire() for e in entries])
        data = client.get("/transfers", query_string={"t0": 150, "t1": 250}).get_json()

        assert data == [{"bytes": 200, "transferTime": 0}]
        assert client.get("/transfers", query_string={"t0": "soon"}).status_code == 400

    def test_dump(self, client, entries):
        client.post("/tfc", json=[e.to_wire() for e in entries])
        resp = client.get("/dump")

        assert resp.status_code == 200
        assert "/a/b/c/f1" in resp.get_data(as_text=True)

    def test_dump_unsupported(self, tmp_path):
        class NoDump(FilesystemCatalog):
            def dump(self):
                return None

        agent = Agent(make_config(tmp_path, "T3"), catalog=NoDump(tmp_path / "fs"))
        assert create_app(agent).test_client().get("/dump").status_code == 501

    def test_snapshot(self, client, entries, tmp_path):
        client.post("/tfc", json=[e.to_wire() for e in entries])
        resp = client.post("/snapshot", json={})

        assert resp.status_code == 200
        leaf = resp.get_json()["path"]
        assert str(tmp_path / "central") in leaf
        assert len(open(f"{leaf}/files").read().splitlines()) == 3

    def test_snapshot_without_central(self, tmp_path):
        agent = Agent(make_config(tmp_path, "T4"))
        assert create_app(agent).test_client().post("/snapshot", json={}).status_code == 500
        agent.catalog.close()


class TestRequestEndpoints:
    def test_submit_assigns_ids_and_queues(self, client, agent):
        resp = client.post("/request", json=_collection(agent))

        assert resp.status_code == 200
        ids = resp.get_json()["ids"]
        assert len(ids) == 1 and ids[0] > 0
        pending = client.get("/requests").get_json()
        assert [p["id"] for p in pending] == ids
        assert pending[0]["srcAlias"] == "T1"
        assert pending[0]["status"] == "queued"
        assert agent.metrics.get("in") == 1

    def test_cancel(self, client, agent):
        rid = client.post("/request", json=_collection(agent)).get_json()["ids"][0]

        assert client.delete(f"/requests/{rid}").status_code == 200
        assert client.delete(f"/requests/{rid}").status_code == 404
        assert client.get("/requests").get_json() == []

    def test_duplicate_id(self, client, agent):
        assert client.post("/request", json=_collection(agent, id=42)).status_code == 200
        assert client.post("/request", json=_collection(agent, id=42)).status_code == 409

    def test_queue_full(self, client, agent):
        for _ in range(2):
            assert client.post("/request", json=_collection(agent)).status_code == 200
        assert client.post("/request", json=_collection(agent)).status_code == 503

    def test_malformed(self, client, agent):
        assert client.post("/request", data="{", content_type="application/json").status_code == 400
        assert client.post("/request", json={"data": [{"priority": "high"}]}).status_code == 400
        assert client.post("/request", json=_collection(agent, srcUrl="")).status_code == 400

    def test_alias_resolution(self, client, agent):
        client.post("/register", json={"Agent": "http://t2:8989", "Alias": "T2"})
        body = _collection(agent, dstUrl="", dstAlias="T2")

        assert client.post("/request", json=body).status_code == 200
        assert client.get("/requests").get_json()[0]["dstUrl"] == "http://t2:8989"

    def test_unknown_alias(self, client, agent):
        body = _collection(agent, dstUrl="", dstAlias="ghost")
        assert client.post("/request", json=body).status_code == 400

    def test_forward_failure(self, client, agent):
        # source is another agent that does not answer
        agent.client.timeout = 0.5
        body = _collection(agent, srcUrl="http://127.0.0.1:9")
        assert client.post("/request", json=body).status_code == 502


class FakeForwarder:
    def __init__(self):
        self.submitted = []

    def submit(self, url, collection):
        self.submitted.append((url, collection))
        return {"status": "ok"}


class FlakyStage(Stage):
    """Fails requests with a negative priority."""

    def process(self, request, proceed):
        if request.priority < 0:
            raise TransferError(f"request {request.id} refused")
        proceed(request)


class TestRequestHistory:
    def test_queued_then_cancelled(self, client, agent):
        rid = client.post("/request", json=_collection(agent)).get_json()["ids"][0]
        assert client.get(f"/requests/{rid}").get_json()["status"] == "queued"

        client.delete(f"/requests/{rid}")

        assert client.get(f"/requests/{rid}").get_json()["status"] == "cancelled"
        cancelled = client.get("/requests", query_string={"status": "cancelled"}).get_json()
        assert [r["id"] for r in cancelled] == [rid]
        assert client.get("/requests", query_string={"status": "queued"}).get_json() == []
        assert client.get("/requests").get_json() == []

    def test_unknown_id_and_status(self, client):
        assert client.get("/requests/12345").status_code == 404
        assert client.get("/requests", query_string={"status": "lost"}).status_code == 400

    def test_forwarded(self, client, agent):
        agent.client = FakeForwarder()
        body = _collection(agent, srcUrl="http://src:8989")
        rid = client.post("/request", json=body).get_json()["ids"][0]

        assert agent.client.submitted[0][0] == "http://src:8989"
        assert client.get(f"/requests/{rid}").get_json()["status"] == "forwarded"
        assert [r["id"] for r in client.get("/requests", query_string={"status": "all"}).get_json()] == [rid]

    def test_worker_outcomes_recorded(self, tmp_path):
        agent = Agent(make_config(tmp_path, "T7", url="http://t7:8989"), stages=[FlakyStage()])
        agent.start()
        try:
            app = create_app(agent).test_client()
            ok = app.post("/request", json=_collection(agent)).get_json()["ids"][0]
            bad = app.post("/request", json=_collection(agent, priority=-1)).get_json()["ids"][0]

            assert wait_until(lambda: app.get(f"/requests/{ok}").get_json()["status"] == "completed")
            assert wait_until(lambda: app.get(f"/requests/{bad}").get_json()["status"] == "failed")
            failed = app.get("/requests", query_string={"status": "failed"}).get_json()
            assert [r["id"] for r in failed] == [bad]
        finally:
            agent.stop()


class TestUpload:
    def _post(self, client, content, lfn="/store/f1", digest=None, size=None):
        digest = digest if digest is not None else hash_bytes(content)[0]
        size = size if size is not None else len(content)
        return client.post(
            "/upload",
            data={"data": (io.BytesIO(content), "f1")},
            headers={"Lfn": lfn, "Pfn": "/src/f1", "Bytes": str(size), "Hash": digest,
                     "Src": "http://src", "Dst": "http://t1:8989"},
            content_type="multipart/form-data",
        )

    def test_upload_verified(self, client, agent):
        content = b"x" * 100
        resp = self._post(client, content)

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["bytes"] == 100
        assert data["pfn"].endswith("store/f1")
        assert open(data["pfn"], "rb").read() == content

    def test_hash_mismatch_leaves_nothing(self, client, agent):
        resp = self._post(client, b"payload", digest="deadbeef")

        assert resp.status_code == 500
        assert list((agent.storage / "store").iterdir()) == []

    def test_rejected_reupload_keeps_stored_copy(self, client, agent):
        good = b"good" * 25
        assert self._post(client, good).status_code == 200

        assert self._post(client, b"corrupt", digest="deadbeef").status_code == 500
        stored = agent.storage / "store" / "f1"
        assert stored.read_bytes() == good
        assert list(stored.parent.iterdir()) == [stored]

    def test_filesystem_catalog_index_protected(self, tmp_path, entries):
        root = tmp_path / "fs"
        config = make_config(tmp_path, "T5", storage=str(root),
                             catalog=CatalogConfig(type="filesystem", uri=str(root)))
        agent = Agent(config)
        agent.catalog.add(entries[0])
        before = (root / "catalog.jsonl").read_bytes()

        resp = self._post(create_app(agent).test_client(), b"junk", lfn="/catalog.jsonl")

        assert resp.status_code == 400
        assert (root / "catalog.jsonl").read_bytes() == before

    def test_sqlite_catalog_file_protected(self, tmp_path):
        agent = Agent(make_config(tmp_path, "T6", storage=str(tmp_path / "T6")))
        resp = self._post(create_app(agent).test_client(), b"junk", lfn="/tfc.db")

        assert resp.status_code == 400
        assert agent.records() == []
        agent.catalog.close()

    def test_size_mismatch(self, client):
        assert self._post(client, b"payload", size=3).status_code == 500

    def test_escaping_lfn_rejected(self, client):
        assert self._post(client, b"payload", lfn="../../etc/passwd").status_code == 400

    def test_missing_headers(self, client):
        resp = client.post("/upload", data={"data": (io.BytesIO(b"x"), "f")},
                           content_type="multipart/form-data")
        assert resp.status_code == 400
