"""Tests for the DuckDB batch pipeline."""

import csv
from dataclasses import replace
from pathlib import Path

import duckdb
import pytest

from ua_fingerprint import pipeline
from ua_fingerprint.config import Settings
from ua_fingerprint.pipeline import main, register_functions, run_pipeline
from ua_fingerprint.utils.hashing import FamilyHashPolicy
from ua_fingerprint.utils.progress import RowProgress
from ua_fingerprint.utils.user_agent import build

from conftest import CHROME_WINDOWS, FIREFOX_LINUX


def write_tsv(path: Path, header: list[str], rows: list[list[str]]) -> Path:
    lines = ["\t".join(header)] + ["\t".join(row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def read_tsv(path: Path) -> list[dict[str, str]]:
    with path.open(encoding="utf-8", newline="") as handle:
        return list(csv.DictReader(handle, delimiter="\t"))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        rules_path=None,
        family_hash_policy=FamilyHashPolicy.CANONICAL,
        verbose=False,
        progress=False,
        input_path=tmp_path / "requests.tsv",
        output_path=tmp_path / "out" / "fingerprints.tsv",
        agent_column="user_agent",
        address_column="ip",
        cache_size=16,
        threads=1,
    )


class TestRunPipeline:
    def test_annotates_requests(self, settings, agent_parser):
        write_tsv(
            settings.input_path,
            ["ip", "user_agent"],
            [
                ["192.168.1.10", CHROME_WINDOWS],
                ["203.0.113.7", FIREFOX_LINUX],
                ["192.168.1.10", CHROME_WINDOWS],
            ],
        )

        output = run_pipeline(settings, parser=agent_parser)
        rows = read_tsv(output)

        assert output == settings.output_path
        assert len(rows) == 3
        expected = build(CHROME_WINDOWS, "192.168.1.10", parser=agent_parser)
        assert rows[0]["fingerprint"] == expected.fingerprint
        assert rows[0]["hash"] == expected.family_hash
        assert rows[0]["browser"] == "Chrome"
        assert rows[0]["os"] == "Windows"
        assert rows[1]["browser"] == "Firefox"
        assert rows[0]["fingerprint"] == rows[2]["fingerprint"]
        assert rows[0]["fingerprint"] != rows[1]["fingerprint"]

    def test_reports_every_row(self, settings, agent_parser, monkeypatch):
        trackers = []

        class RecordingProgress(RowProgress):
            def __enter__(self):
                trackers.append(self)
                return super().__enter__()

        monkeypatch.setattr(pipeline, "RowProgress", RecordingProgress)
        write_tsv(
            settings.input_path,
            ["ip", "user_agent"],
            [["10.0.0.1", CHROME_WINDOWS], ["10.0.0.1", CHROME_WINDOWS], ["10.0.0.2", ""]],
        )

        run_pipeline(settings, parser=agent_parser)

        assert trackers[0].total_rows == 3
        assert trackers[0].rows_done == 3

    def test_empty_agent_has_no_identifiers(self, settings, agent_parser):
        write_tsv(
            settings.input_path,
            ["ip", "user_agent"],
            [["10.0.0.1", ""], ["10.0.0.2", FIREFOX_LINUX]],
        )

        rows = read_tsv(run_pipeline(settings, parser=agent_parser))

        assert rows[0]["fingerprint"] == ""
        assert rows[0]["hash"] == ""
        assert rows[1]["fingerprint"] != ""

    def test_missing_address_column(self, settings, agent_parser):
        write_tsv(settings.input_path, ["user_agent"], [[FIREFOX_LINUX]])

        rows = read_tsv(run_pipeline(settings, parser=agent_parser))

        assert rows[0]["fingerprint"] == build(FIREFOX_LINUX, None, parser=agent_parser).fingerprint

    def test_prefixed_policy(self, settings, agent_parser):
        write_tsv(settings.input_path, ["ip", "user_agent"], [["10.0.0.1", CHROME_WINDOWS]])

        rows = read_tsv(
            run_pipeline(
                replace(settings, family_hash_policy=FamilyHashPolicy.PREFIXED),
                parser=agent_parser,
            )
        )

        assert rows[0]["hash"].startswith("ch-wi-")

    def test_missing_agent_column(self, settings, agent_parser):
        write_tsv(settings.input_path, ["ip", "agent"], [["10.0.0.1", "curl/8.1.2"]])

        with pytest.raises(ValueError, match="user_agent"):
            run_pipeline(settings, parser=agent_parser)

    def test_missing_input(self, settings, agent_parser):
        with pytest.raises(FileNotFoundError):
            run_pipeline(settings, parser=agent_parser)


class TestRegisterFunctions:
    def test_fingerprint_calls_row_hook_for_duplicates(self, agent_parser):
        rows = []
        conn = duckdb.connect(database=":memory:")
        register_functions(
            conn, agent_parser, FamilyHashPolicy.CANONICAL, 16, on_row=lambda: rows.append(1)
        )

        result = conn.execute(
            "SELECT ua_fingerprint(agent, NULL), ua_browser(agent, NULL) "
            "FROM (VALUES ('curl/8.1.2'), ('curl/8.1.2'), (NULL)) AS t(agent)"
        ).fetchall()
        conn.close()

        assert len(rows) == 3
        assert result[0] == result[1]
        assert result[0][0] == build("curl/8.1.2", None, parser=agent_parser).fingerprint
        assert result[2] == (None, None)


class TestMain:
    def test_exits_on_bad_rule_file(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("USER_AGENT_PATH", str(tmp_path / "missing.yaml"))
        write_tsv(tmp_path / "requests.tsv", ["ip", "user_agent"], [["10.0.0.1", "curl/8.1.2"]])

        with pytest.raises(SystemExit) as excinfo:
            main([str(tmp_path / "requests.tsv")])

        assert excinfo.value.code == 1
        assert not (tmp_path / "fingerprints.tsv").exists()

    def test_writes_output(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("USER_AGENT_PATH", raising=False)
        source = write_tsv(
            tmp_path / "requests.tsv", ["ip", "user_agent"], [["10.0.0.1", FIREFOX_LINUX]]
        )
        target = tmp_path / "annotated.tsv"

        main([str(source), "-o", str(target), "--policy", "prefixed"])

        rows = read_tsv(target)
        assert rows[0]["hash"].startswith("fi-li-")
