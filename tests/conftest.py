import json
import math
import os
import sys

import httpx
import pytest

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Settings are read at import time; keep the developer's shell out of the tests
for _key in [k for k in os.environ if k.startswith("MCP_MEMORY_") or k.startswith("MCP_SERVER_")]:
    del os.environ[_key]


class FakeChromaServer:
    """In-process stand-in for the vector database REST API (served via httpx.MockTransport).

    Implements just enough of ``/api/v1`` for the storage backend: list/create
    collections, get (by ids or ``$contains``/``$or`` filter), add, query with
    cosine distance, delete and count. ``fail_paths`` forces an HTTP 500 for
    any request whose path ends with one of its entries.
    """

    def __init__(self):
        self.collections: dict[str, dict] = {}
        self.requests: list[tuple[str, str, dict | None]] = []
        self.fail_paths: set[str] = set()
        self.raw_responses: dict[str, bytes] = {}

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # -- request dispatch ---------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))

        for suffix in self.fail_paths:
            if path.endswith(suffix):
                return httpx.Response(500, text="internal error")
        for suffix, raw in self.raw_responses.items():
            if path.endswith(suffix):
                return httpx.Response(200, content=raw)

        assert path.startswith("/api/v1/"), path
        parts = path[len("/api/v1/") :].split("/")

        if parts == ["collections"]:
            if request.method == "GET":
                return httpx.Response(200, json=[{"name": name, **c["meta"]} for name, c in self.collections.items()])
            return self._create(body)

        name = parts[1]
        if name not in self.collections:
            return httpx.Response(404, json={"error": f"Collection {name} does not exist."})
        records = self.collections[name]["records"]
        action = parts[2]

        if action == "count":
            return httpx.Response(200, json=len(records))
        if action == "add":
            for i, object_id in enumerate(body["ids"]):
                records[object_id] = {
                    "embedding": body["embeddings"][i],
                    "metadata": body["metadatas"][i],
                    "document": body["documents"][i],
                }
            return httpx.Response(201, json=True)
        if action == "get":
            return httpx.Response(200, json=self._get(records, body))
        if action == "query":
            return httpx.Response(200, json=self._query(records, body))
        if action == "delete":
            for object_id in body["ids"]:
                records.pop(object_id, None)
            return httpx.Response(200, json=body["ids"])
        return httpx.Response(404, json={"error": "not found"})

    # -- endpoint behaviour -------------------------------------------------

    def _create(self, body: dict) -> httpx.Response:
        name = body["name"]
        if name in self.collections:
            return httpx.Response(409, json={"error": f"Collection {name} already exists."})
        self.collections[name] = {"meta": {"metadata": body.get("metadata")}, "records": {}}
        return httpx.Response(200, json={"name": name, "metadata": body.get("metadata")})

    @staticmethod
    def _matches(where: dict | None, metadata: dict) -> bool:
        if where is None:
            return True
        if "$or" in where:
            return any(FakeChromaServer._matches(cond, metadata) for cond in where["$or"])
        contains = where["$contains"]
        return contains["value"] in (metadata.get(contains["path"]) or [])

    def _get(self, records: dict, body: dict) -> dict:
        if body.get("ids") is not None:
            selected = [i for i in body["ids"] if i in records]
        else:
            selected = [i for i, r in records.items() if self._matches(body.get("where"), r["metadata"])]
        return {
            "ids": selected,
            "documents": [records[i]["document"] for i in selected],
            "metadatas": [records[i]["metadata"] for i in selected],
            "embeddings": [records[i]["embedding"] for i in selected],
        }

    @staticmethod
    def _cosine_distance(a: list[float], b: list[float]) -> float:
        dot = sum(x * y for x, y in zip(a, b))
        norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
        return 1.0 - (dot / norm if norm else 0.0)

    def _query(self, records: dict, body: dict) -> dict:
        query = body["query_embeddings"][0]
        ranked = sorted(records, key=lambda i: self._cosine_distance(query, records[i]["embedding"]))
        top = ranked[: body["n_results"]]
        return {
            "ids": [top],
            "documents": [[records[i]["document"] for i in top]],
            "metadatas": [[records[i]["metadata"] for i in top]],
            "embeddings": [[records[i]["embedding"] for i in top]],
            "distances": [[self._cosine_distance(query, records[i]["embedding"]) for i in top]],
        }


@pytest.fixture
def chroma_server():
    """Fresh fake vector database for one test."""
    return FakeChromaServer()
