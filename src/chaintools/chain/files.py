from __future__ import annotations

import glob
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TextIO

import yaml

from chaintools.chain.refs import (
    ACTIONCHAIN_SLS_FILE_PREFIX,
    ACTIONCHAIN_SLS_FOLDER,
    find_file_refs_in,
    is_kept_ref,
)
from chaintools.config import GeneratorConfig
from chaintools.errors import ArtifactWriteError
from chaintools.states.render import Top, dump_states, render_top
from chaintools.states.types import StateDeclaration

SLS_EXT = "sls"

OwnerSetter = Callable[[Path], None]


def chown_to(user: str) -> OwnerSetter:
    """Ownership capability assigning ``user`` as owner of a path."""
    def _set_owner(path: Path) -> None:
        shutil.chown(path, user=user)
    return _set_owner


# ---------------------------------------------------------------------------
# Naming (pure; recomputed independently by the minion side)
# ---------------------------------------------------------------------------

def chunk_file_name(action_chain_id: int, machine_id: str, chunk: int) -> str:
    return f"{ACTIONCHAIN_SLS_FILE_PREFIX}{action_chain_id}_{machine_id}_{chunk}.{SLS_EXT}"


def chunk_file_pattern(action_chain_id: Optional[int], machine_id: str) -> str:
    """Glob for every chunk of a chain, or of every chain when id is None."""
    chain = "*" if action_chain_id is None else str(action_chain_id)
    return f"{ACTIONCHAIN_SLS_FILE_PREFIX}{chain}_{glob.escape(machine_id)}_*.{SLS_EXT}"


def action_chain_top_path(action_chain_id: int, action_id: int) -> str:
    """actionchains/top_<chainId>_<actionId>.sls, relative to the states root."""
    return f"{ACTIONCHAIN_SLS_FOLDER}/top_{action_chain_id}_{action_id}.{SLS_EXT}"


# ---------------------------------------------------------------------------
# Chunk files
# ---------------------------------------------------------------------------

class ChunkFiles:
    """
    Owns the actionchains folder below the states root: writes chunk
    files and deletes them together with the files they reference.
    """

    def __init__(self, config: GeneratorConfig, set_owner: Optional[OwnerSetter] = None) -> None:
        self.config = config
        self.log = config.logger
        self.set_owner = set_owner or chown_to(config.owner)

    @property
    def states_root(self) -> Path:
        return self.config.states_root

    @property
    def target_dir(self) -> Path:
        return self.states_root / ACTIONCHAIN_SLS_FOLDER

    def chunk_file_path(self, action_chain_id: int, machine_id: str, chunk: int) -> Path:
        return self.target_dir / chunk_file_name(action_chain_id, machine_id, chunk)

    # -----------------------------------------------------------------------
    # Writing
    # -----------------------------------------------------------------------
    def ensure_target_dir(self) -> Path:
        """
        Make sure the actionchains folder exists.

        Safe when several endpoints create it at the same time; the owner is
        only assigned by a call that found the folder missing.
        """
        target_dir = self.target_dir
        if target_dir.is_dir():
            return target_dir
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            if not self.config.skip_set_owner:
                self.set_owner(target_dir)
        except (OSError, LookupError) as e:
            self.log.error("Could not create action chain directory %s: %s", target_dir, e)
            raise ArtifactWriteError(f"Could not create action chain directory {target_dir}") from e
        return target_dir

    def _write_text(self, path: Path, write: Callable[[TextIO], None]) -> None:
        # Write to a temp file next to the target, then rename: readers
        # never see a partially written file.
        tmp: Optional[Path] = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            tmp = Path(tmp_name)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                write(f)
            # mkstemp creates 0600; the salt master reads these files
            tmp.chmod(0o644)
            tmp.replace(path)
            tmp = None
        except (OSError, yaml.YAMLError) as e:
            self.log.error("Could not write action chain sls %s: %s", path, e)
            raise ArtifactWriteError(f"Could not write action chain sls {path}") from e
        finally:
            # the temp name matches no chunk pattern, so cleanup would never find it
            if tmp is not None:
                try:
                    tmp.unlink(missing_ok=True)
                except OSError as e:
                    self.log.warning("Could not remove temp file %s: %s", tmp, e)

    def write_chunk(
        self,
        states: Sequence[StateDeclaration],
        action_chain_id: int,
        machine_id: str,
        chunk: int,
    ) -> Path:
        self.ensure_target_dir()
        path = self.chunk_file_path(action_chain_id, machine_id, chunk)
        self._write_text(path, lambda f: dump_states(states, f))
        self.log.debug("Wrote %s (%d states)", path, len(states))
        return path

    def write_top(self, rel_path: str, top: Top) -> Path:
        self.ensure_target_dir()
        path = self.states_root / rel_path
        content = render_top(top)
        self._write_text(path, lambda f: f.write(content))
        return path

    # -----------------------------------------------------------------------
    # Cleanup (best effort: failures are logged, never raised)
    # -----------------------------------------------------------------------
    def _resolve_ref(self, ref: str) -> Optional[Path]:
        root = self.states_root
        path = (root / ref).resolve()
        if root not in path.parents:
            self.log.warning("Skipping reference outside of %s: %s", root, ref)
            return None
        # "a/../actionchains/actionchain_..." must not reach a chunk or permanent file
        if is_kept_ref(path.relative_to(root).as_posix(), self.config.permanent_refs):
            self.log.warning("Skipping reference to a kept file: %s", ref)
            return None
        return path

    def delete_chunk_and_refs(self, sls_file: Path) -> List[Path]:
        """
        Delete ``sls_file`` and the files it references.

        Returns the paths that were removed.
        """
        sls_file = self.target_dir / sls_file
        to_delete: List[Path] = [sls_file]
        for ref in find_file_refs_in(sls_file, self.config.permanent_refs):
            path = self._resolve_ref(ref)
            if path is not None and path not in to_delete:
                to_delete.append(path)

        removed: List[Path] = []
        for path in to_delete:
            try:
                if path.is_dir() or not path.exists():
                    continue
                path.unlink()
                removed.append(path)
            except OSError as e:
                self.log.warning("Error deleting action chain file %s: %s", path, e)
        return removed

    def delete_chunks(self, action_chain_id: Optional[int], machine_id: str) -> List[Path]:
        """Delete every chunk (and its references) of a chain, or all chains, for a machine."""
        target_dir = self.target_dir
        if not target_dir.is_dir():
            return []

        removed: List[Path] = []
        try:
            matches = sorted(target_dir.glob(chunk_file_pattern(action_chain_id, machine_id)))
        except OSError as e:
            self.log.warning("Error deleting action chain files: %s", e)
            return removed
        for sls_file in matches:
            removed.extend(self.delete_chunk_and_refs(sls_file))
        return removed
