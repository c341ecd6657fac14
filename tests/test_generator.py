import logging
from pathlib import Path

import pytest
import yaml

from chaintools.chain import ActionChain, ActionChainGenerator, Endpoint, create_state_id
from chaintools.config import GeneratorConfig
from chaintools.errors import RequisiteError
from chaintools.states.render import Top
from chaintools.states.types import ModuleRun, State, SystemReboot

CHAIN = ActionChain(id=1)
EP = Endpoint(machine_id="m1", minion_id="minion1.example.com")


def _states():
    return [
        ModuleRun(id=create_state_id(1, 10), name="state.apply", args={"mods": "hardware.profileupdate"}, action_id=10),
        SystemReboot(id=create_state_id(1, 11), action_id=11),
        ModuleRun(id=create_state_id(1, 12), name="state.apply", args={"mods": "packages.pkgupdate"}, action_id=12),
    ]


def _generator(root: Path, **kw) -> ActionChainGenerator:
    return ActionChainGenerator(GeneratorConfig(states_root=root, skip_set_owner=True), **kw)


def test_create_chunk_files(root: Path, caplog):
    gen = _generator(root)
    expected = gen.chunks_per_endpoint(CHAIN, {EP: _states()})

    with caplog.at_level(logging.INFO, logger="ActionChain"):
        counts = gen.create_chunk_files(CHAIN, EP, _states())

    assert counts == expected == {EP: 2}
    files = gen.chunk_files(1, EP, 2)
    assert [p.name for p in files] == ["actionchain_1_m1_1.sls", "actionchain_1_m1_2.sls"]
    assert all(p.is_file() for p in files)
    assert "wrote 2 chunk(s)" in caplog.text

    first = yaml.safe_load(files[0].read_text())
    assert list(first) == [
        "mgr_actionchain_1_action_10_chunk_1",
        "mgr_actionchain_1_action_11_chunk_1",
        "schedule_next_chunk",
    ]


def test_extra_filerefs_reach_continuation(root: Path):
    gen = _generator(root)
    gen.create_chunk_files(CHAIN, EP, _states(), extra_filerefs="salt://scripts/a.sh")

    first = yaml.safe_load(gen.chunk_files(1, EP, 1)[0].read_text())
    params = first["schedule_next_chunk"]["mgrcompat.module_run"]
    assert {"ssh_extra_filerefs": "salt://scripts/a.sh"} in params


def test_requisite_error_writes_nothing(root: Path):
    gen = _generator(root)
    states = [State(id="bad", body={"nodot": []}), *_states()]

    with pytest.raises(RequisiteError):
        gen.create_chunk_files(CHAIN, EP, states)

    assert not (root / "actionchains").exists()


def test_generate_top(root: Path):
    ref = _generator(root).generate_top(1, 7, Top(states=["certs", "channels"], target="minion1"))

    assert ref == "salt://actionchains/top_1_7.sls"
    content = (root / "actionchains" / "top_1_7.sls").read_text()
    assert yaml.safe_load(content) == {"base": {"minion1": ["certs", "channels"]}}


def test_remove_chunk_files_unknown_minion(root: Path):
    gen = _generator(root)
    gen.create_chunk_files(CHAIN, EP, _states())

    assert gen.remove_chunk_files(1, "unknown", 1, False) == []
    assert all(p.exists() for p in gen.chunk_files(1, EP, 2))


def test_remove_finished_chunk(root: Path):
    gen = _generator(root, find_endpoint=lambda minion: EP if minion == EP.minion_id else None)
    gen.create_chunk_files(CHAIN, EP, _states())
    c1, c2 = gen.chunk_files(1, EP, 2)

    assert gen.remove_chunk_files(1, EP.minion_id, 1, False) == [c1]
    assert not c1.exists()
    assert c2.exists()


def test_failed_chain_removes_remaining_chunks(root: Path):
    gen = _generator(root, find_endpoint=lambda minion: EP)
    gen.create_chunk_files(CHAIN, EP, _states())
    c1, c2 = gen.chunk_files(1, EP, 2)

    removed = gen.remove_chunk_files(1, EP.minion_id, 1, True)

    assert removed == [c1, c2]
    assert not c2.exists()


def test_remove_files_for_endpoint(root: Path):
    gen = _generator(root)
    gen.create_chunk_files(CHAIN, EP, _states())
    gen.create_chunk_files(ActionChain(id=2), EP, _states())

    removed = gen.remove_files_for_endpoint(EP, 1)
    assert [p.name for p in removed] == ["actionchain_1_m1_1.sls", "actionchain_1_m1_2.sls"]

    removed = gen.remove_files_for_endpoint(EP)
    assert [p.name for p in removed] == ["actionchain_2_m1_1.sls", "actionchain_2_m1_2.sls"]
