"""Tests for the CSV source."""

from __future__ import annotations

import asyncio
import bz2
import logging
from pathlib import Path

import pytest

from locindex.sources.csvfile import CSVSource

CSV = "id,label\nsh85021262,Cats\n,Orphan\nsh85038796,\"Dogs, working\"\nsh85052028,\n"


async def collect(source: CSVSource) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []

    async def callback(row: dict[str, str]) -> None:
        rows.append(row)

    await source.index(callback)
    return rows


class TestCSVSource:
    async def test_reads_rows(self, tmp_path: Path) -> None:
        path = tmp_path / "lcsh.csv"
        path.write_text(CSV, encoding="utf-8")

        rows = await collect(CSVSource("lcsh", path))

        assert rows == [
            {"id": "sh85021262", "label": "Cats"},
            {"id": "sh85038796", "label": "Dogs, working"},
            {"id": "sh85052028", "label": ""},
        ]

    async def test_reads_bzip2(self, tmp_path: Path) -> None:
        path = tmp_path / "lcsh.csv.bz2"
        path.write_bytes(bz2.compress(CSV.encode("utf-8")))

        rows = await collect(CSVSource("lcsh", path))

        assert [r["id"] for r in rows] == ["sh85021262", "sh85038796", "sh85052028"]

    async def test_reads_in_chunks(self, tmp_path: Path) -> None:
        path = tmp_path / "lcsh.csv"
        path.write_text(CSV, encoding="utf-8")

        rows = await collect(CSVSource("lcsh", path, chunk_size=2))

        assert [r["id"] for r in rows] == ["sh85021262", "sh85038796", "sh85052028"]

    async def test_missing_id_reported_with_line_number(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        path = tmp_path / "lcsh.csv"
        path.write_text(CSV, encoding="utf-8")

        with caplog.at_level(logging.WARNING):
            await collect(CSVSource("lcsh", path, chunk_size=1))
        assert "line 3: missing id" in caplog.text

    async def test_other_tasks_run_while_reading(self, tmp_path: Path) -> None:
        path = tmp_path / "lcsh.csv"
        path.write_text(CSV, encoding="utf-8")
        started = asyncio.Event()
        seen: list[bool] = []

        async def other() -> None:
            started.set()

        async def callback(row: dict[str, str]) -> None:
            seen.append(started.is_set())

        task = asyncio.create_task(other())
        await CSVSource("lcsh", path).index(callback)
        await task

        assert seen == [True, True, True]

    def test_rejects_empty_chunks(self) -> None:
        with pytest.raises(ValueError):
            CSVSource("lcsh", "lcsh.csv", chunk_size=0)

    async def test_short_rows(self, tmp_path: Path) -> None:
        path = tmp_path / "lcnaf.csv"
        path.write_text("id,label,extra\nn79021164\n", encoding="utf-8")

        assert await collect(CSVSource("lcnaf", path)) == [{"id": "n79021164", "label": "", "extra": ""}]

    async def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await collect(CSVSource("lcsh", tmp_path / "missing.csv"))

    def test_repr(self) -> None:
        assert repr(CSVSource("lcsh", "lcsh.csv")) == "CSVSource(label='lcsh')"
