from pathlib import Path
import json

import pytest
from typer.testing import CliRunner

from chaintools.cli import app


runner = CliRunner()


CHAIN_DOC = """\
chain_id: 3
endpoint:
  machine_id: m1
  minion_id: minion1.example.com
states:
  - kind: module_run
    action_id: 30
    name: state.apply
    args: {mods: remotecommands}
    kwargs: {pillar: {mgr_remote_cmd_script: "salt://scripts/script_30.sh"}}
  - kind: system_reboot
    action_id: 31
  - kind: module_run
    action_id: 32
    name: state.apply
    args: {mods: packages.pkgupdate}
"""


def _write_chain(tmp_path: Path, text: str = CHAIN_DOC) -> Path:
    path = tmp_path / "chain.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def _normalized(result) -> str:
    # Strip Typer / Rich box-drawing characters
    out = result.output
    for ch in "│─╭╮╰╯":
        out = out.replace(ch, " ")
    return " ".join(out.split())


def _render(tmp_path: Path, root: Path):
    return runner.invoke(
        app,
        [
            "chain", "render",
            "--chain", str(_write_chain(tmp_path)),
            "--root", str(root),
            "--skip-set-owner",
        ],
    )


# ==========================================================
# RENDER / COUNT
# ==========================================================

def test_render_writes_chunks(tmp_path: Path, root: Path):
    states_root = root / "salt"
    result = _render(tmp_path, states_root)

    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert report["chain_id"] == 3
    assert report["chunks"] == 2
    assert [Path(f).name for f in report["files"]] == [
        "actionchain_3_m1_1.sls",
        "actionchain_3_m1_2.sls",
    ]
    assert all(Path(f).is_file() for f in report["files"])


def test_count_does_not_write(tmp_path: Path):
    result = runner.invoke(app, ["chain", "count", "--chain", str(_write_chain(tmp_path))])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"m1": 2}


@pytest.mark.parametrize(
    "doc, match",
    [
        (
            CHAIN_DOC.replace("    name: state.apply\n    args: {mods: remotecommands}", "    args: {mods: remotecommands}"),
            "module_run.name must be a string",
        ),
        ("- not a mapping\n", "must be a mapping"),
    ],
)
def test_render_rejects_bad_documents(tmp_path: Path, doc, match):
    result = runner.invoke(
        app,
        ["chain", "render", "--chain", str(_write_chain(tmp_path, doc)), "--root", str(tmp_path)],
    )

    assert result.exit_code != 0
    assert match in _normalized(result)
    assert not (tmp_path / "actionchains").exists()


# ==========================================================
# CLEANUP
# ==========================================================

def test_clean_single_chunk(tmp_path: Path, root: Path):
    states_root = root / "salt"
    _render(tmp_path, states_root)
    (states_root / "scripts").mkdir()
    script = states_root / "scripts" / "script_30.sh"
    script.write_text("echo hi\n")

    result = runner.invoke(
        app,
        [
            "chain", "clean",
            "--chain-id", "3", "--machine-id", "m1",
            "--minion-id", "minion1.example.com",
            "--chunk", "1", "--root", str(states_root),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "removed 2 file(s)" in result.output
    assert not script.exists()
    assert not (states_root / "actionchains" / "actionchain_3_m1_1.sls").exists()
    assert (states_root / "actionchains" / "actionchain_3_m1_2.sls").exists()


def test_clean_failed_chain(tmp_path: Path, root: Path):
    states_root = root / "salt"
    _render(tmp_path, states_root)

    result = runner.invoke(
        app,
        [
            "chain", "clean",
            "--chain-id", "3", "--machine-id", "m1",
            "--chunk", "1", "--failed", "--root", str(states_root),
        ],
    )

    assert result.exit_code == 0, result.output
    assert list((states_root / "actionchains").iterdir()) == []


def test_clean_endpoint(tmp_path: Path, root: Path):
    states_root = root / "salt"
    _render(tmp_path, states_root)

    result = runner.invoke(
        app, ["chain", "clean-endpoint", "--machine-id", "m1", "--root", str(states_root)]
    )

    assert result.exit_code == 0, result.output
    assert "removed 2 file(s)" in result.output


# ==========================================================
# INSPECTION
# ==========================================================

def test_parse_id():
    result = runner.invoke(app, ["chain", "parse-id", "mgr_actionchain_42_action_7_chunk_3"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"action_chain_id": 42, "action_id": 7, "chunk": 3}


def test_parse_id_rejects_other_ids():
    result = runner.invoke(app, ["chain", "parse-id", "schedule_next_chunk"])
    assert result.exit_code == 1


def test_refs(tmp_path: Path, root: Path):
    states_root = root / "salt"
    _render(tmp_path, states_root)

    result = runner.invoke(
        app, ["chain", "refs", str(states_root / "actionchains" / "actionchain_3_m1_1.sls")]
    )

    assert result.exit_code == 0, result.output
    assert result.stdout.split() == ["scripts/script_30.sh"]


def test_top(root: Path):
    result = runner.invoke(
        app,
        [
            "chain", "top",
            "--chain-id", "1", "--action-id", "2",
            "--state", "certs", "--state", "channels",
            "--root", str(root), "--skip-set-owner",
        ],
    )

    assert result.exit_code == 0, result.output
    assert result.stdout.strip() == "salt://actionchains/top_1_2.sls"
    assert (root / "actionchains" / "top_1_2.sls").is_file()
