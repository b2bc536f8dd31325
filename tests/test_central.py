# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tfcmesh/tests/test_central.py

from datetime import datetime

import pytest

from tfcmesh.catalog.central import CentralCatalog
from tfcmesh.errors import CentralCatalogError

TS = 1700000000


class TestCentralCatalog:
    def test_round_trip(self, tmp_path):
        central = CentralCatalog(tmp_path)
        central.put("table", ["r1", "r2"])

        assert central.get("table").split("\n")[:2] == ["r1", "r2"]
        assert central.records("table") == ["r1", "r2"]

    def test_layout_not_zero_padded(self, tmp_path):
        central = CentralCatalog(tmp_path, clock=lambda: TS)
        leaf = central.put("files", ["a"])

        day = datetime.fromtimestamp(TS)
        expected = tmp_path / str(day.year) / str(day.month) / str(day.day) / str(TS)
        assert leaf == expected
        assert (expected / "files").read_text() == "a\n"

    def test_same_second_gets_fresh_leaf(self, tmp_path):
        central = CentralCatalog(tmp_path, clock=lambda: TS)
        first = central.put("files", ["old"])
        second = central.put("files", ["new"])

        assert first != second
        assert second.name == str(TS + 1)
        assert central.records("files") == ["new"]

    def test_latest_is_numeric_not_lexical(self, tmp_path):
        ts = iter([TS, TS + 5])
        central = CentralCatalog(tmp_path, clock=lambda: next(ts))
        central.put("files", ["first"])
        central.put("files", ["second"])
        # a non-numeric entry counts as 0 and is never chosen
        (central.latest().parent / "notes").mkdir()

        assert central.records("files") == ["second"]

    def test_snapshot_writes_all_tables_in_one_leaf(self, tmp_path):
        central = CentralCatalog(tmp_path)
        leaf = central.put_snapshot({"datasets": ["1,/a"], "blocks": ["1,/a#1"], "files": []})

        assert sorted(p.name for p in leaf.iterdir()) == ["blocks", "datasets", "files"]
        assert central.get("files") == ""

    def test_empty_store(self, tmp_path):
        central = CentralCatalog(tmp_path)

        assert central.latest() == tmp_path / "0" / "0" / "0" / "0"
        with pytest.raises(CentralCatalogError):
            central.get("files")
