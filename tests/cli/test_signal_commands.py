"""CLI command tests using Click CliRunner.

Strategy: point each run at a config file whose db_path lives under tmp_path,
so commands exercise a real SQLite store. The LLM provider is patched at the
cli.utils import point for extract.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from cli.main import cli
from signals import SignalService, SQLiteSignalStore
from signals.errors import PartialBatchError, StoreReadError


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "signals.db"


@pytest.fixture
def config_file(tmp_path, db_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "paths": {"db_path": str(db_path)},
                "signals": {"model_id": "cli-model", "confidence_min": 0.0, "confidence_max": 1.0},
                "retry": {"max_attempts": 1, "min_wait": 0, "max_wait": 0},
                "logging": {"level": "WARNING"},
            }
        )
    )
    return path


@pytest.fixture
def invoke(runner, config_file):
    def _invoke(*args):
        return runner.invoke(cli, ["-c", str(config_file), *args])

    return _invoke


def _stored(db_path, user_id="u1"):
    return SQLiteSignalStore(db_path).get(user_id)


class TestAdd:
    def test_add_records_version(self, invoke, db_path):
        result = invoke("add", "u1", "e1", "mood", "0.8", "0.9")
        assert result.exit_code == 0, result.output
        assert "version 1" in result.output

        result = invoke("add", "u1", "e1", "mood", "0.4", "0.7", "--model", "m2")
        assert "version 2" in result.output

        signals = _stored(db_path)
        assert [(s.version, s.model) for s in signals] == [(1, "cli-model"), (2, "m2")]

    def test_add_with_provenance(self, invoke, db_path):
        result = invoke(
            "add", "u1", "e1", "mood", "0.8", "0.9", "--trigger", "cap-1", "--window-days", "14", "--run-id", "r1"
        )
        assert result.exit_code == 0, result.output
        [signal] = _stored(db_path)
        assert (signal.trigger_capture_id, signal.source_window_days, signal.llm_run_id) == ("cap-1", 14, "r1")

    def test_confidence_outside_configured_range(self, invoke, db_path):
        result = invoke("add", "u1", "e1", "mood", "0.8", "1.5")
        assert result.exit_code == 1
        assert "Invalid input" in result.output
        assert _stored(db_path) == []

    def test_non_numeric_value(self, invoke):
        result = invoke("add", "u1", "e1", "mood", "high", "0.5")
        assert result.exit_code != 0

    def test_failed_read_back_still_reports_id(self, invoke):
        service = MagicMock()
        service.add_signal.return_value = "sig-new"
        service.get_history.side_effect = StoreReadError("database is locked")
        with patch("cli.commands.signals.get_service", return_value=service):
            result = invoke("add", "u1", "e1", "mood", "0.8", "0.9")
        assert result.exit_code == 0, result.output
        assert "Recorded sig-new" in result.output
        assert "version" not in result.output

    def test_reports_version_of_own_record(self, invoke):
        mine = MagicMock(id="sig-new", version=3)
        newer = MagicMock(id="sig-other", version=4)
        service = MagicMock()
        service.add_signal.return_value = "sig-new"
        service.get_history.return_value = [mine, newer]
        with patch("cli.commands.signals.get_service", return_value=service):
            result = invoke("add", "u1", "e1", "mood", "0.8", "0.9")
        assert result.exit_code == 0, result.output
        assert "(version 3)" in result.output
        service.get_latest.assert_not_called()


class TestImport:
    def _batch(self, tmp_path, **extra):
        path = tmp_path / "batch.json"
        data = {
            "model": "batch-model",
            "llm_run_id": "run-9",
            "observations": [
                {"entry_id": "e1", "key": "mood", "value": 0.5, "confidence": 0.8},
                {"entry_id": "e1", "key": "energy", "value": 0.2, "confidence": 0.6},
            ],
            **extra,
        }
        path.write_text(json.dumps(data))
        return path

    def test_import_batch(self, invoke, tmp_path, db_path):
        result = invoke("import", "u1", str(self._batch(tmp_path)))
        assert result.exit_code == 0, result.output
        assert "Recorded 2 signal(s)" in result.output
        signals = _stored(db_path)
        assert {s.llm_run_id for s in signals} == {"run-9"}
        assert {s.model for s in signals} == {"batch-model"}

    def test_empty_batch_rejected(self, invoke, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps({"observations": []}))
        result = invoke("import", "u1", str(path))
        assert result.exit_code == 1
        assert "Invalid input" in result.output

    def test_malformed_file(self, invoke, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text("[1, 2]")
        result = invoke("import", "u1", str(path))
        assert result.exit_code == 1
        assert "Invalid batch file" in result.output

    @pytest.mark.parametrize("item", ["oops", 7, ["e1", "mood", 0.5, 0.5]])
    def test_non_object_observation_rejected(self, invoke, tmp_path, db_path, item):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps({"observations": [item]}))
        result = invoke("import", "u1", str(path))
        assert result.exit_code == 1
        assert "Invalid batch file" in result.output
        assert "observation 0" in result.output
        assert _stored(db_path) == []

    def test_partial_failure_lists_committed(self, invoke, tmp_path):
        service = MagicMock()
        service.add_signals_batch.side_effect = PartialBatchError(["sig-a"], 1, 2)
        with patch("cli.commands.signals.get_service", return_value=service):
            result = invoke("import", "u1", str(self._batch(tmp_path)), "--best-effort")
        assert result.exit_code == 1
        assert "Partially recorded" in result.output
        assert "sig-a" in result.output
        assert service.add_signals_batch.call_args.kwargs["atomic"] is False

    def test_atomic_flag(self, invoke, tmp_path):
        service = MagicMock()
        service.add_signals_batch.return_value = ["a", "b"]
        with patch("cli.commands.signals.get_service", return_value=service):
            result = invoke("import", "u1", str(self._batch(tmp_path)), "--atomic")
        assert result.exit_code == 0, result.output
        assert service.add_signals_batch.call_args.kwargs["atomic"] is True


class TestReads:
    @pytest.fixture(autouse=True)
    def seeded(self, db_path):
        service = SignalService(SQLiteSignalStore(db_path))
        service.add_signal("u1", "e1", "mood", 0.8, 0.9, "m1")
        service.add_signal("u1", "e1", "mood", 0.4, 0.7, "m2")
        service.add_signal("u1", "e2", "energy", 0.3, 0.5, "m1")

    def test_list_json(self, invoke):
        result = invoke("list", "u1", "--json")
        assert result.exit_code == 0, result.output
        rows = json.loads(result.output)
        assert [(r["entry_id"], r["key"], r["version"]) for r in rows] == [
            ("e1", "mood", 1),
            ("e1", "mood", 2),
            ("e2", "energy", 1),
        ]

    def test_list_latest_filtered(self, invoke):
        result = invoke("list", "u1", "--key", "mood", "--latest", "--json")
        [row] = json.loads(result.output)
        assert row["version"] == 2
        assert row["value"] == 0.4

    def test_list_table(self, invoke):
        result = invoke("list", "u1")
        assert result.exit_code == 0, result.output
        assert "mood" in result.output
        assert "energy" in result.output

    def test_list_empty(self, invoke):
        result = invoke("list", "nobody")
        assert "No signals found" in result.output

    def test_list_rejects_bad_limit(self, invoke):
        result = invoke("list", "u1", "--limit", "0")
        assert result.exit_code == 1
        assert "Invalid input" in result.output

    def test_history(self, invoke):
        result = invoke("history", "u1", "e1", "mood", "--json")
        assert [r["version"] for r in json.loads(result.output)] == [1, 2]

    def test_stats(self, invoke):
        result = invoke("stats", "u1")
        assert result.exit_code == 0, result.output
        assert "Signals: 3" in result.output
        assert "Partitions: 2" in result.output
        assert "mood: 2" in result.output


class TestExtract:
    def test_extract_records_run(self, invoke, db_path):
        provider = MagicMock()
        provider.generate.return_value = json.dumps(
            {"tone_stress": {"value": 0.6, "confidence": 0.7}}
        )
        with patch("llm.factory.create_cheap_provider", return_value=provider):
            result = invoke("extract", "u1", "cap-1", "Deadline tomorrow and nothing is ready.")
        assert result.exit_code == 0, result.output
        assert "Recorded 1 signal(s)" in result.output

        [signal] = _stored(db_path)
        assert signal.entry_id == "cap-1"
        assert signal.key == "tone_stress"
        assert signal.trigger_capture_id == "cap-1"
        assert signal.source_window_days == 30
        assert signal.model == "cli-model"
        assert signal.llm_run_id

    def test_extract_nothing_found(self, invoke, db_path):
        provider = MagicMock()
        provider.generate.return_value = "{}"
        with patch("llm.factory.create_cheap_provider", return_value=provider):
            result = invoke("extract", "u1", "cap-1", "Quiet day.")
        assert result.exit_code == 0, result.output
        assert "No signals extracted" in result.output
        assert _stored(db_path) == []


class TestConfigErrors:
    def test_bad_config_exits(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("signals:\n  default_window_days: 0\n")
        result = runner.invoke(cli, ["-c", str(path), "stats", "u1"])
        assert result.exit_code == 1
        assert "Config error" in result.output
