"""
Tests for the command line entry point (snapshot mode)
"""

import json
import pytest
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import ORG_ID
from database.memory_store import MemoryStore


@pytest.fixture
def snapshot(seeded_store, tmp_path):
    path = tmp_path / "snapshot.json"
    seeded_store.save_json(str(path))
    return path


def run_cli(monkeypatch, *args):
    import main

    monkeypatch.setattr(sys, "argv", ["main.py", "--org", ORG_ID, *args])
    main.main()


class TestCli:
    """Tests for main.py modes"""

    def test_rankings(self, monkeypatch, capsys, snapshot):
        run_cli(monkeypatch, "--snapshot", str(snapshot), "--category", "mens_singles", "--view", "lifetime")
        out = capsys.readouterr().out
        assert "Men's Singles (lifetime)" in out
        assert "Bob Brown" in out

    def test_changes(self, monkeypatch, capsys, snapshot):
        run_cli(
            monkeypatch, "--snapshot", str(snapshot), "--mode", "changes", "--category", "mens_singles",
            "--since", "2025-01-01", "--as-of", "2025-06-01", "--view", "lifetime",
        )
        lines = capsys.readouterr().out.splitlines()
        assert "Bob Brown" in lines[0] and "+0" in lines[0]
        assert "Alice" in lines[1] and "new" in lines[1]

    def test_export_to_file(self, monkeypatch, snapshot, tmp_path):
        out_file = tmp_path / "rankings.csv"
        run_cli(
            monkeypatch, "--snapshot", str(snapshot), "--mode", "export",
            "--category", "mens_singles", "--view", "lifetime", "--out", str(out_file),
        )
        assert out_file.read_text(encoding="utf-8").splitlines()[1] == "1,Bob Brown,USA,1300"

    def test_import_dry_run_then_commit(self, monkeypatch, capsys, snapshot, tmp_path):
        csv_file = tmp_path / "may.csv"
        csv_file.write_text(
            "player_name,country,gender,category,finishing_position,event_date,tournament_name,tier\n"
            "Bob Brown,USA,male,mens_singles,winner,2025-05-01,May Cup,tier4\n",
            encoding="utf-8",
        )
        run_cli(monkeypatch, "--snapshot", str(snapshot), "--mode", "import", "--file", str(csv_file))
        preview = json.loads(capsys.readouterr().out)
        assert preview["needs_resolution"] is True

        resolutions = tmp_path / "resolutions.json"
        resolutions.write_text(json.dumps({"row_0": "bob"}), encoding="utf-8")
        run_cli(
            monkeypatch, "--snapshot", str(snapshot), "--mode", "import", "--file", str(csv_file),
            "--resolutions", str(resolutions), "--commit",
        )
        report = json.loads(capsys.readouterr().out)
        assert report["succeeded"] == 1

        reloaded = MemoryStore.from_json(str(snapshot))
        assert len(reloaded.list_results(ORG_ID, player_id="bob")) == 3

    def test_merge_saves_snapshot(self, monkeypatch, capsys, snapshot):
        run_cli(monkeypatch, "--snapshot", str(snapshot), "--mode", "merge", "--primary", "alice", "--duplicate", "bob")
        assert json.loads(capsys.readouterr().out)["events_transferred"] == 2
        assert MemoryStore.from_json(str(snapshot)).get_player(ORG_ID, "bob") is None

    def test_core_error_exits_nonzero(self, monkeypatch, snapshot):
        with pytest.raises(SystemExit) as exc:
            run_cli(monkeypatch, "--snapshot", str(snapshot), "--mode", "merge", "--primary", "alice", "--duplicate", "ghost")
        assert exc.value.code == 1
