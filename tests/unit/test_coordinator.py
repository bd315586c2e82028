"""Unit tests for the pipeline coordinator.

All tests run **without** Chroma or OpenAI: the vector store is an
in-memory fake, embeddings are deterministic, and the chat model is a
``MagicMock`` returning canned ``AIMessage`` objects.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from conftest import FakeEmbeddings, FakeVectorStore, make_llm
from knowledge_ingest.clients.summarizer import SUMMARY_PLACEHOLDER
from knowledge_ingest.errors import DirectoryUnreadable, VisualAnalysisFailure
from knowledge_ingest.models import FileRecord
from knowledge_ingest.pipeline.state import FileState, RunStats

METADATA_KEYS = {
    "document_id",
    "file_name",
    "file_path",
    "file_type",
    "file_hash",
    "chunk_index",
    "chunk_total",
    "content",
    "summary",
    "indexed_at",
}


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _broken_middle_text() -> str:
    """2500 chars whose only marker sits in chunk 1 of [0,1000), [800,1800), [1600,2500)."""
    return "a" * 1200 + "BROKEN" + "b" * (2500 - 1206)


# ── Single file ─────────────────────────────────────────────────────────


class TestProcessFile:
    def test_text_file_is_stored(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        coordinator = make_coordinator(store=store)
        f = _write(tmp_path / "notes.md", "Kubeflow pipelines orchestrate ML workflows.")

        result = coordinator.process_file(FileRecord.from_path(f))

        assert result.state is FileState.STORED
        assert result.content_hash.startswith("sha256:")
        assert result.chunks == 1
        assert result.vectors_written == 1
        assert list(store.records) == [f"{result.document_id}-chunk-0"]

    def test_metadata_is_denormalized(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        coordinator = make_coordinator(store=store, llm=make_llm("Doc summary."))
        f = _write(tmp_path / "long.txt", "z" * 2500)

        result = coordinator.process_file(FileRecord.from_path(f))

        assert result.chunks == 3
        records = sorted(store.records.values(), key=lambda r: r.metadata["chunk_index"])
        assert [r.metadata["chunk_index"] for r in records] == [0, 1, 2]
        for r in records:
            assert set(r.metadata) == METADATA_KEYS
            assert r.id == f"{result.document_id}-chunk-{r.metadata['chunk_index']}"
            assert r.metadata["document_id"] == result.document_id
            assert r.metadata["file_name"] == "long.txt"
            assert r.metadata["file_path"] == str(f.absolute())
            assert r.metadata["file_type"] == ".txt"
            assert r.metadata["file_hash"] == result.content_hash
            assert r.metadata["chunk_total"] == 3
            assert r.metadata["summary"] == "Doc summary."
            assert isinstance(r.metadata["indexed_at"], int)
            assert all(isinstance(v, (str, int, float, bool)) for v in r.metadata.values())
        assert records[2].metadata["content"] == "z" * 900

    def test_empty_content_is_not_an_error(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        llm = make_llm()
        coordinator = make_coordinator(store=store, llm=llm)
        f = _write(tmp_path / "blank.txt", "   \n\n ")

        result = coordinator.process_file(FileRecord.from_path(f))

        assert result.state is FileState.EMPTY
        assert result.processed
        assert result.chunks == 0
        assert store.records == {}
        assert store.upsert_calls == []
        llm.invoke.assert_not_called()

    def test_partial_embedding_failure(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        coordinator = make_coordinator(store=store, embeddings=FakeEmbeddings(8, fail_on=("BROKEN",)))
        f = _write(tmp_path / "doc.txt", _broken_middle_text())

        result = coordinator.process_file(FileRecord.from_path(f))

        assert result.state is FileState.STORED
        assert result.processed
        assert result.chunks == 3
        assert result.vectors_written == 2
        indices = sorted(r.metadata["chunk_index"] for r in store.records.values())
        assert indices == [0, 2]
        # chunk_total counts produced chunks, not embedded ones.
        assert {r.metadata["chunk_total"] for r in store.records.values()} == {3}

    def test_dimension_mismatch_drops_chunk(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        coordinator = make_coordinator(store=store, embeddings=FakeEmbeddings(8, wrong_dimension_on=("BROKEN",)))
        f = _write(tmp_path / "doc.txt", _broken_middle_text())

        result = coordinator.process_file(FileRecord.from_path(f))

        assert result.vectors_written == 2
        assert all(len(r.values) == 8 for r in store.records.values())

    def test_all_chunks_failing_is_degraded_but_processed(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        coordinator = make_coordinator(store=store, embeddings=FakeEmbeddings(8, fail_on=("",)))
        f = _write(tmp_path / "doc.txt", "anything at all")

        result = coordinator.process_file(FileRecord.from_path(f))

        assert result.state is FileState.ZERO_CHUNKS_EMBEDDED
        assert result.processed
        assert result.degraded
        assert store.upsert_calls == []

    def test_cancel_during_embedding_stops_queued_chunks(self, tmp_path: Path, make_coordinator) -> None:
        cancel = threading.Event()

        class CancellingEmbeddings(FakeEmbeddings):
            calls = 0

            def embed_query(self, text: str) -> list[float]:
                CancellingEmbeddings.calls += 1
                cancel.set()
                return super().embed_query(text)

        store = FakeVectorStore()
        coordinator = make_coordinator(store=store, embeddings=CancellingEmbeddings(8), embed_concurrency=1)
        f = _write(tmp_path / "doc.txt", "q" * 2500)  # 3 chunks

        result = coordinator.process_file(FileRecord.from_path(f), cancel_event=cancel)

        assert result.state is FileState.CANCELLED
        assert CancellingEmbeddings.calls == 1
        assert store.upsert_calls == []

    def test_summary_failure_uses_placeholder(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        coordinator = make_coordinator(store=store, llm=make_llm(side_effect=RuntimeError("llm down")))
        f = _write(tmp_path / "doc.txt", "content worth indexing")

        result = coordinator.process_file(FileRecord.from_path(f))

        assert result.state is FileState.STORED
        assert [r.metadata["summary"] for r in store.records.values()] == [SUMMARY_PLACEHOLDER]

    def test_existence_check_failure_reprocesses(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore(fail_query=True)
        coordinator = make_coordinator(store=store)
        f = _write(tmp_path / "doc.txt", "content")

        result = coordinator.process_file(FileRecord.from_path(f))

        assert result.state is FileState.STORED
        assert len(store.queries) == 1
        assert len(store.records) == 1

    def test_storage_failure_is_an_error(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore(fail_upsert_on_call=2)
        coordinator = make_coordinator(store=store, upsert_batch_size=2)
        f = _write(tmp_path / "doc.txt", "q" * 2500)

        result = coordinator.process_file(FileRecord.from_path(f))

        assert result.state is FileState.STORAGE_FAILED
        assert result.errored
        # First batch of two vectors stays committed.
        assert result.vectors_written == 2
        assert len(store.records) == 2

    def test_unsupported_format(self, tmp_path: Path, make_coordinator) -> None:
        f = tmp_path / "bundle.zip"
        f.write_bytes(b"PK\x03\x04")

        result = make_coordinator().process_file(FileRecord.from_path(f))

        assert result.state is FileState.EXTRACTION_FAILED
        assert result.errored
        assert ".zip" in result.error

    def test_read_failure(self, tmp_path: Path, make_coordinator) -> None:
        f = _write(tmp_path / "gone.txt", "x")
        record = FileRecord.from_path(f)
        f.unlink()

        result = make_coordinator().process_file(record)

        assert result.state is FileState.READ_FAILED
        assert result.errored

    def test_unexpected_exception_fails_only_that_file(self, tmp_path: Path, make_coordinator) -> None:
        coordinator = make_coordinator()
        coordinator.dispatcher.extract = MagicMock(side_effect=ZeroDivisionError("boom"))  # type: ignore[method-assign]
        f = _write(tmp_path / "doc.txt", "x")

        result = coordinator.process_file(FileRecord.from_path(f))

        assert result.state is FileState.FAILED
        assert "ZeroDivisionError" in result.error

    def test_force_skips_existence_check(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        coordinator = make_coordinator(store=store)
        record = FileRecord.from_path(_write(tmp_path / "doc.txt", "content"))

        coordinator.process_file(record)
        queries_before = len(store.queries)
        result = coordinator.process_file(record, force=True)

        assert result.state is FileState.STORED
        assert len(store.queries) == queries_before


# ── Vision ──────────────────────────────────────────────────────────────


class _FakeVision:
    def __init__(self, description: str = "", error: Exception | None = None) -> None:
        self.description = description
        self.error = error
        self.calls: list[Path] = []

    def analyze_image(self, path: Path) -> str:
        self.calls.append(Path(path))
        if self.error is not None:
            raise self.error
        return self.description


class TestVision:
    def test_visual_content_is_appended(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        vision = _FakeVision("A diagram of three services.")
        coordinator = make_coordinator(store=store, vision=vision)
        f = tmp_path / "arch.svg"
        f.write_text('<svg xmlns="http://www.w3.org/2000/svg"><title>Arch</title></svg>')

        coordinator.process_file(FileRecord.from_path(f))

        (record,) = store.records.values()
        assert record.metadata["content"] == "SVG Diagram Content:\nArch\n\nA diagram of three services."
        assert vision.calls == [f.absolute()]

    def test_vision_failure_is_tolerated(self, tmp_path: Path, make_coordinator) -> None:
        from PIL import Image

        store = FakeVectorStore()
        coordinator = make_coordinator(store=store, vision=_FakeVision(error=VisualAnalysisFailure("nope")))
        f = tmp_path / "pic.png"
        Image.new("RGB", (4, 4)).save(f)

        result = coordinator.process_file(FileRecord.from_path(f))

        assert result.state is FileState.STORED
        (record,) = store.records.values()
        assert record.metadata["content"].startswith("Image: pic.png")

    def test_vision_not_called_for_text(self, tmp_path: Path, make_coordinator) -> None:
        vision = _FakeVision("should not appear")
        coordinator = make_coordinator(vision=vision)
        coordinator.process_file(FileRecord.from_path(_write(tmp_path / "a.txt", "text")))
        assert vision.calls == []


# ── Directory runs ──────────────────────────────────────────────────────


class TestProcessDirectory:
    def test_end_to_end_duplicate_is_skipped(self, tmp_path: Path, make_coordinator) -> None:
        """a.txt + identical a_copy.txt → processed=1, skipped=1, errored=0."""
        store = FakeVectorStore()
        coordinator = make_coordinator(store=store)
        _write(tmp_path / "a.txt", "identical bytes " * 10)
        _write(tmp_path / "a_copy.txt", "identical bytes " * 10)

        stats = coordinator.process_directory(tmp_path)

        assert (stats.total, stats.processed, stats.skipped, stats.errored) == (2, 1, 1, 0)
        assert len({r.metadata["file_name"] for r in store.records.values()}) == 1
        assert len({r.metadata["document_id"] for r in store.records.values()}) == 1

    @pytest.mark.parametrize("workers", [1, 2])
    def test_duplicate_of_failed_upsert_is_indexed(self, tmp_path: Path, make_coordinator, workers: int) -> None:
        """The copy that loses its upsert does not take the other copy down with it."""
        store = FakeVectorStore(fail_upsert_on_call=1)
        coordinator = make_coordinator(store=store, max_workers=workers)
        _write(tmp_path / "a.txt", "identical bytes " * 10)
        _write(tmp_path / "a_copy.txt", "identical bytes " * 10)

        stats = coordinator.process_directory(tmp_path)

        assert (stats.total, stats.processed, stats.skipped, stats.errored) == (2, 1, 0, 1)
        assert len(store.records) == 1
        assert len(store.file_hashes()) == 1

    def test_duplicate_of_unsupported_file_is_indexed(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        coordinator = make_coordinator(store=store, max_workers=1)
        for name in ("a.xyz", "b.txt", "c.xyz", "z.xyz"):
            _write(tmp_path / name, "same words in every file")

        stats = coordinator.process_directory(tmp_path)

        assert stats.total == 4
        assert stats.processed == 1
        assert stats.skipped + stats.errored == 3
        assert {r.metadata["file_name"] for r in store.records.values()} == {"b.txt"}

    def test_duplicate_of_cancelled_file_is_not_skipped(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        cancel = threading.Event()
        llm = make_llm()
        llm.invoke.side_effect = lambda messages: (cancel.set(), make_llm().invoke(messages))[1]
        coordinator = make_coordinator(store=store, llm=llm, max_workers=2)
        _write(tmp_path / "a.txt", "identical bytes")
        _write(tmp_path / "a_copy.txt", "identical bytes")

        stats = coordinator.process_directory(tmp_path, cancel_event=cancel)

        assert stats.skipped == 0
        assert stats.processed == 0
        assert store.records == {}

    def test_second_run_is_idempotent(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        coordinator = make_coordinator(store=store)
        _write(tmp_path / "doc.md", "stable content " * 100)

        first = coordinator.process_directory(tmp_path)
        snapshot = dict(store.records)
        second = coordinator.process_directory(tmp_path)

        assert first.processed == 1
        assert second.processed == 0
        assert second.skipped == 1
        assert second.vectors_written == 0
        assert store.records == snapshot

    def test_force_reprocesses(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        coordinator = make_coordinator(store=store)
        _write(tmp_path / "doc.md", "stable content")

        coordinator.process_directory(tmp_path)
        again = coordinator.process_directory(tmp_path, force=True)

        assert again.processed == 1
        assert again.skipped == 0

    def test_run_isolation(self, tmp_path: Path, make_coordinator) -> None:
        """One unsupported file does not stop the text file next to it."""
        (tmp_path / "blob.xyz").write_bytes(b"\x00\x01")
        _write(tmp_path / "ok.txt", "fine")

        stats = make_coordinator().process_directory(tmp_path)

        assert (stats.processed, stats.errored, stats.skipped) == (1, 1, 0)

    def test_counters_and_degraded(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        coordinator = make_coordinator(store=store, embeddings=FakeEmbeddings(8, fail_on=("UNEMBEDDABLE",)))
        _write(tmp_path / "good.txt", "good " * 500)  # 2500 chars → 3 chunks
        _write(tmp_path / "bad.txt", "UNEMBEDDABLE")
        _write(tmp_path / "empty.txt", "")
        _write(tmp_path / "nested" / "code.py", "print('hi')\n")

        stats = coordinator.process_directory(tmp_path)

        assert stats.total == 4
        assert stats.processed == 4
        assert stats.degraded == 1
        assert stats.errored == 0
        assert stats.chunks == 3 + 1 + 1
        assert stats.vectors_written == 4
        assert len(store.records) == 4

    def test_missing_root_raises(self, tmp_path: Path, make_coordinator) -> None:
        with pytest.raises(DirectoryUnreadable):
            make_coordinator().process_directory(tmp_path / "does-not-exist")

    def test_hidden_files_are_ignored(self, tmp_path: Path, make_coordinator) -> None:
        _write(tmp_path / ".env", "SECRET=1")
        _write(tmp_path / ".cache" / "x.txt", "cached")
        _write(tmp_path / "visible.txt", "hello")

        stats = make_coordinator().process_directory(tmp_path)

        assert stats.total == 1

    def test_pre_cancelled_run_starts_nothing(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        _write(tmp_path / "a.txt", "a")
        _write(tmp_path / "b.txt", "b")
        cancel = threading.Event()
        cancel.set()

        stats = make_coordinator(store=store).process_directory(tmp_path, cancel_event=cancel)

        assert stats.processed == 0
        assert store.records == {}

    def test_cancel_mid_run_stops_new_work(self, tmp_path: Path, make_coordinator) -> None:
        store = FakeVectorStore()
        cancel = threading.Event()
        llm = make_llm()
        llm.invoke.side_effect = lambda messages: (cancel.set(), make_llm().invoke(messages))[1]
        coordinator = make_coordinator(store=store, llm=llm, max_workers=1)
        for i in range(5):
            _write(tmp_path / f"f{i}.txt", f"file number {i}")

        stats = coordinator.process_directory(tmp_path, cancel_event=cancel)

        # The first file is cancelled before embedding; nothing else starts.
        assert llm.invoke.call_count == 1
        assert stats.processed == 0
        assert stats.cancelled >= 1
        assert store.records == {}

    def test_timeout_cancels(self, tmp_path: Path, make_coordinator) -> None:
        started = threading.Event()

        def slow_summary(messages):
            started.set()
            threading.Event().wait(0.5)
            return make_llm().invoke(messages)

        llm = make_llm()
        llm.invoke.side_effect = slow_summary
        coordinator = make_coordinator(llm=llm, max_workers=1)
        _write(tmp_path / "a.txt", "a")

        stats = coordinator.process_directory(tmp_path, timeout=0.05)

        assert started.is_set()
        assert stats.cancelled == 1
        assert stats.processed == 0

    def test_status_reports_last_run(self, tmp_path: Path, make_coordinator) -> None:
        coordinator = make_coordinator()
        idle = coordinator.status()
        assert idle["running"] is False
        assert idle["total"] == 0

        _write(tmp_path / "a.txt", "a")
        coordinator.process_directory(tmp_path)

        status = coordinator.status()
        assert status["running"] is False
        assert status["processed"] == 1
        assert status["root"] == str(tmp_path)
        assert coordinator.running is False
        assert coordinator.cancel() is False

    def test_outcome_lines_are_logged(self, tmp_path: Path, make_coordinator, caplog) -> None:
        _write(tmp_path / "ok.txt", "fine")
        (tmp_path / "bad.xyz").write_bytes(b"?")

        with caplog.at_level(logging.INFO, logger="knowledge_ingest"):
            make_coordinator().process_directory(tmp_path)

        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("✓ ok.txt") for m in messages)
        assert any(m.startswith("✗ bad.xyz") for m in messages)
        assert any(m.startswith("Ingestion finished") for m in messages)


# ── RunStats ────────────────────────────────────────────────────────────


def test_run_stats_snapshot() -> None:
    stats = RunStats(root="/data")
    stats.discovered()
    assert stats.as_dict()["running"] is True
    stats.finish()
    snapshot = stats.as_dict()
    assert snapshot["total"] == 1
    assert snapshot["running"] is False
    assert set(snapshot) >= {"processed", "skipped", "errored", "degraded", "cancelled", "chunks", "vectors_written"}
