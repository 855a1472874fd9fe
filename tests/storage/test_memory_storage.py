# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for the in-process storage backend."""

import asyncio

import pytest

from semantic_memory.embeddings import DummyEmbeddingGenerator
from semantic_memory.models.memory import Memory
from semantic_memory.storage.base import DUPLICATE_MESSAGE
from semantic_memory.storage.memory import InMemoryStorage


@pytest.fixture
async def storage():
    s = InMemoryStorage(DummyEmbeddingGenerator(3))
    await s.initialize()
    yield s
    await s.close()


def _memory(content: str, embedding: list[float] | None = None, tags: list[str] | None = None) -> Memory:
    memory = Memory.create(content, tags=tags)
    memory.embedding = embedding
    return memory


class TestStore:
    async def test_store_then_get(self, storage):
        memory = _memory("The sky is blue", tags=["nature"])

        ok, message = await storage.store(memory)

        assert ok is True
        assert message == f"Successfully stored memory with hash: {memory.content_hash}"
        stored = await storage.get_by_hash(memory.content_hash)
        assert stored.content == "The sky is blue"
        assert stored.tags == ["nature"]
        assert len(stored.embedding) == 3
        assert await storage.count() == 1

    async def test_caller_memory_not_mutated(self, storage):
        memory = _memory("x")
        await storage.store(memory)
        assert memory.embedding is None

    async def test_duplicate_rejected_and_first_kept(self, storage):
        first = _memory("The sky is blue", tags=["first"])
        second = _memory("  THE SKY IS BLUE ", tags=["second"])
        assert first.content_hash == second.content_hash

        assert await storage.store(first) == (True, f"Successfully stored memory with hash: {first.content_hash}")
        assert await storage.store(second) == (False, DUPLICATE_MESSAGE)

        stored = await storage.get_by_hash(first.content_hash)
        assert stored.tags == ["first"]
        assert await storage.count() == 1

    async def test_concurrent_duplicates_have_one_winner(self, storage):
        memories = [_memory("same content") for _ in range(10)]

        results = await asyncio.gather(*(storage.store(m) for m in memories))

        assert sum(1 for ok, _ in results if ok) == 1
        assert all(message == DUPLICATE_MESSAGE for ok, message in results if not ok)
        assert await storage.count() == 1

    async def test_wrong_embedding_size_rejected(self, storage):
        with pytest.raises(ValueError, match="Embedding dimension mismatch"):
            await storage.store(_memory("x", embedding=[1.0, 0.0]))
        assert await storage.count() == 0


class TestRetrieve:
    async def test_ordered_by_similarity(self, storage):
        await storage.store(_memory("east", [1.0, 0.0, 0.0]))
        await storage.store(_memory("north", [0.0, 1.0, 0.0]))
        await storage.store(_memory("north-east", [1.0, 1.0, 0.0]))

        results = await storage.retrieve([1.0, 0.1, 0.0], n_results=3)

        assert [r.memory.content for r in results] == ["east", "north-east", "north"]
        scores = [r.relevance_score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert scores[0] == pytest.approx(0.995, abs=1e-3)

    async def test_truncates_to_n_results(self, storage):
        for i in range(5):
            await storage.store(_memory(f"memory {i}", [1.0, float(i), 0.0]))

        assert len(await storage.retrieve([1.0, 0.0, 0.0], n_results=2)) == 2

    async def test_ties_keep_insertion_order(self, storage):
        await storage.store(_memory("first", [0.0, 0.0, 1.0]))
        await storage.store(_memory("second", [0.0, 0.0, 2.0]))

        results = await storage.retrieve([0.0, 0.0, 1.0], n_results=2)

        assert [r.memory.content for r in results] == ["first", "second"]

    async def test_non_positive_n_results_returns_empty(self, storage):
        await storage.store(_memory("x"))
        assert await storage.retrieve([1.0, 0.0, 0.0], n_results=0) == []

    async def test_empty_store(self, storage):
        assert await storage.retrieve([1.0, 0.0, 0.0]) == []

    async def test_query_size_mismatch_rejected(self, storage):
        with pytest.raises(ValueError):
            await storage.retrieve([1.0, 0.0])


class TestSearchByTag:
    async def test_any_tag_matches(self, storage):
        await storage.store(_memory("a", tags=["red"]))
        await storage.store(_memory("b", tags=["blue"]))
        await storage.store(_memory("c", tags=["green", "red"]))

        found = await storage.search_by_tag(["red", "blue"])

        assert sorted(m.content for m in found) == ["a", "b", "c"]

    async def test_exact_match_only(self, storage):
        await storage.store(_memory("a", tags=["Red"]))
        assert await storage.search_by_tag(["red"]) == []

    async def test_empty_tags_match_nothing(self, storage):
        await storage.store(_memory("a", tags=["red"]))
        assert await storage.search_by_tag([]) == []


class TestDelete:
    async def test_delete_existing(self, storage):
        memory = _memory("x")
        await storage.store(memory)

        assert await storage.delete(memory.content_hash) == (
            True,
            f"Successfully deleted memory with hash: {memory.content_hash}",
        )
        assert await storage.exists(memory.content_hash) is False
        assert await storage.count() == 0

    async def test_delete_missing(self, storage):
        assert await storage.delete("nope") == (False, "No memory found with hash: nope")

    async def test_store_again_after_delete(self, storage):
        memory = _memory("x")
        await storage.store(memory)
        await storage.delete(memory.content_hash)

        ok, _ = await storage.store(_memory("x"))

        assert ok is True
