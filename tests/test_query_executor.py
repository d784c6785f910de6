"""Tests for the command-line runner."""

from __future__ import annotations

import json

from questdb_client.query_executor import main


class TestQueryExecutor:
    def test_prints_rows(self, work_dir, capsys):
        config = work_dir / "local.yaml"
        config.write_text("transport: duckdb\n")
        assert main([str(config), "select * from range(3) t(n)", "2"]) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert [json.loads(line) for line in lines] == [{"n": 0}, {"n": 1}]

    def test_usage(self, capsys):
        assert main([]) == 1
        assert "Usage" in capsys.readouterr().out

    def test_query_error(self, work_dir):
        config = work_dir / "local.yaml"
        config.write_text("transport: duckdb\n")
        assert main([str(config), "selec 1"]) == 1

    def test_missing_config(self, work_dir):
        assert main([str(work_dir / "missing.yaml"), "select 1"]) == 1
