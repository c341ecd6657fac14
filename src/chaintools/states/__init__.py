"""
Salt state declarations handled by the action chain generator.

Exports the public API:
- StateDeclaration and its variants
- state_from_dict
- dump_states / render_top
"""
from .types import (
    StateDeclaration,
    State,
    ModuleRun,
    PkgInstalled,
    PatchInstalled,
    SystemReboot,
    STATE_KINDS,
)
from .factory import state_from_dict
from .render import Top, dump_states, render_top
