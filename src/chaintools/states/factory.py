# chaintools/states/factory.py

from typing import Any, Dict, Optional

from chaintools.chain.stateid import create_state_id
from chaintools.states.schema import validate_state_dict
from chaintools.states.types import (
    ModuleRun,
    PatchInstalled,
    PkgInstalled,
    State,
    StateDeclaration,
    SystemReboot,
)


def state_from_dict(d: Dict[str, Any], *, chain_id: Optional[int] = None) -> StateDeclaration:
    """
    Build a state declaration from its document form.

    Module runs and reboots without an explicit ``id`` get the action chain
    state id of their action, which requires ``chain_id``.
    """
    validate_state_dict(d)
    kind = d["kind"]

    if kind == "state":
        return State(id=d["id"], body=dict(d["body"]))

    if kind == "pkg_installed":
        return PkgInstalled(
            packages={str(k): (None if v is None else str(v)) for k, v in d["packages"].items()},
            **({"id": d["id"]} if "id" in d else {}),
        )

    if kind == "patch_installed":
        return PatchInstalled(
            patches=list(d["patches"]),
            **({"id": d["id"]} if "id" in d else {}),
        )

    action_id = d.get("action_id")
    state_id = d.get("id")
    if state_id is None and action_id is not None:
        if chain_id is None:
            raise ValueError(f"Cannot derive state id for action {action_id} without a chain id")
        state_id = create_state_id(chain_id, action_id)

    if kind == "system_reboot":
        return SystemReboot(
            id=state_id or "mgr_reboot",
            minutes=d.get("minutes", 1),
            action_id=action_id,
        )

    return ModuleRun(
        id=state_id,
        name=d["name"],
        args=dict(d.get("args") or {}),
        kwargs=d.get("kwargs"),
        action_id=action_id,
    )
