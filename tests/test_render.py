import io

import yaml

from chaintools.states.render import Top, dump_state, dump_states, render_top
from chaintools.states.types import ModuleRun, PkgInstalled


def test_render_top():
    out = render_top(Top(states=["certs", "channels"], target="minion1"))
    assert out.splitlines() == [
        "base:",
        "  'minion1':",
        "    - certs",
        "    - channels",
    ]


def test_render_top_defaults():
    assert yaml.safe_load(render_top(Top(states=["a"]))) == {"base": {"*": ["a"]}}


def test_dump_state_keeps_param_order():
    st = ModuleRun(
        id="mgr_actionchain_1_action_2_chunk_1",
        name="state.apply",
        args={"mods": "packages.pkginstall", "queue": True},
        kwargs={"pillar": {"param_pkgs": {"vim": "9.0"}}},
    )
    st.add_require("mgrcompat", "prev")

    data = yaml.safe_load(dump_state(st))
    assert data == {
        "mgr_actionchain_1_action_2_chunk_1": {
            "mgrcompat.module_run": [
                {"name": "state.apply"},
                {"mods": "packages.pkginstall"},
                {"queue": True},
                {"kwargs": {"pillar": {"param_pkgs": {"vim": "9.0"}}}},
                {"require": [{"mgrcompat": "prev"}]},
            ]
        }
    }


def test_long_values_stay_on_one_line():
    refs = ",".join(f"salt://scripts/script_{i}.sh" for i in range(30))
    st = ModuleRun(id="x", name="mgractionchains.next", args={"ssh_extra_filerefs": refs})
    lines = [l for l in dump_state(st).splitlines() if "ssh_extra_filerefs" in l]
    assert len(lines) == 1
    assert refs in lines[0]


def test_dump_states_in_order():
    pkg = PkgInstalled()
    pkg.add_package("salt", "3006.0")
    pkg.add_package("vim")
    buf = io.StringIO()
    dump_states([ModuleRun(id="a", name="test.ping"), pkg], buf)

    data = yaml.safe_load(buf.getvalue())
    assert list(data) == ["a", "mgr_pkg_installed"]
    assert data["mgr_pkg_installed"]["pkg.installed"] == [
        {"refresh": True},
        {"pkgs": [{"salt": "3006.0"}, "vim"]},
    ]
