"""
Action chain generator.

Glue between the planner and the chunk files: plans the states of one
endpoint, writes one SLS file per chunk and removes them again when the
chain finished, failed, or the endpoint went away.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from chaintools.chain.files import ChunkFiles, OwnerSetter, action_chain_top_path
from chaintools.chain.planner import ChunkPlanner, endpoint_push_mode
from chaintools.chain.refs import SALT_FS_PREFIX
from chaintools.chain.types import ActionChain, Endpoint
from chaintools.config import GeneratorConfig
from chaintools.states.render import Top
from chaintools.states.types import StateDeclaration

EndpointLookup = Callable[[str], Optional[Endpoint]]


def _no_lookup(minion_id: str) -> Optional[Endpoint]:
    return None


class ActionChainGenerator:
    """
    Writes and removes the chunk files of action chains.

    Collaborators are injected:
      set_owner: assigns the owner of a freshly created actionchains folder
      find_endpoint: minion id -> Endpoint, used by cleanup requests
      is_push_mode: decides whether an endpoint runs without a salt-minion
    """

    def __init__(
        self,
        config: GeneratorConfig,
        *,
        set_owner: Optional[OwnerSetter] = None,
        find_endpoint: EndpointLookup = _no_lookup,
        is_push_mode: Callable[[Endpoint], bool] = endpoint_push_mode,
    ) -> None:
        self.config = config
        self.log = config.logger
        self.files = ChunkFiles(config, set_owner=set_owner)
        self.find_endpoint = find_endpoint
        self.is_push_mode = is_push_mode

    def _planner(
        self, action_chain_id: int, endpoint: Endpoint, extra_filerefs: Optional[str] = None
    ) -> ChunkPlanner:
        return ChunkPlanner(
            action_chain_id, endpoint, extra_filerefs=extra_filerefs, is_push_mode=self.is_push_mode
        )

    # -----------------------------------------------------------------------
    # Generation
    # -----------------------------------------------------------------------
    def chunks_per_endpoint(
        self, action_chain: ActionChain, endpoint_states: Mapping[Endpoint, Sequence[StateDeclaration]]
    ) -> Dict[Endpoint, int]:
        """Number of chunk files each endpoint would get; nothing is written."""
        return {
            endpoint: self._planner(action_chain.id, endpoint).count_chunks(states)
            for endpoint, states in endpoint_states.items()
        }

    def create_chunk_files(
        self,
        action_chain: ActionChain,
        endpoint: Endpoint,
        states: Sequence[StateDeclaration],
        extra_filerefs: Optional[str] = None,
    ) -> Dict[Endpoint, int]:
        """
        Generate the SLS files of ``action_chain`` for ``endpoint``.

        ``extra_filerefs`` lists files salt-ssh must ship with every chunk;
        it is passed on to each ``mgractionchains.next`` call.
        Returns the number of chunk files written for the endpoint.
        """
        chunks = self._planner(action_chain.id, endpoint, extra_filerefs).plan(states)
        for chunk_no, chunk in enumerate(chunks, start=1):
            self.files.write_chunk(chunk, action_chain.id, endpoint.machine_id, chunk_no)

        self.log.info(
            "Action chain %s: wrote %d chunk(s) for %s",
            action_chain.id, len(chunks), endpoint.minion_id or endpoint.machine_id,
        )
        return {endpoint: len(chunks)}

    def chunk_files(self, action_chain_id: int, endpoint: Endpoint, chunks: int) -> List[Path]:
        return [
            self.files.chunk_file_path(action_chain_id, endpoint.machine_id, n)
            for n in range(1, chunks + 1)
        ]

    # -----------------------------------------------------------------------
    # Top files for salt-ssh highstate
    # -----------------------------------------------------------------------
    def generate_top(self, action_chain_id: int, action_id: int, top: Top) -> str:
        """Write the chain specific top file and return its salt:// reference."""
        top_file = action_chain_top_path(action_chain_id, action_id)
        self.files.write_top(top_file, top)
        return SALT_FS_PREFIX + top_file

    # -----------------------------------------------------------------------
    # Cleanup
    # -----------------------------------------------------------------------
    def remove_chunk_files(
        self, action_chain_id: int, minion_id: str, chunk: int, action_chain_failed: bool
    ) -> List[Path]:
        """
        Remove the file of a finished chunk.

        When the chain failed, the remaining chunks are not needed anymore
        and are removed as well. Unknown minions are ignored.
        """
        endpoint = self.find_endpoint(minion_id)
        if endpoint is None:
            self.log.debug("No endpoint for minion %s, nothing to clean", minion_id)
            return []

        removed = self.files.delete_chunk_and_refs(
            self.files.chunk_file_path(action_chain_id, endpoint.machine_id, chunk)
        )
        if action_chain_failed:
            removed.extend(self.files.delete_chunks(action_chain_id, endpoint.machine_id))
        return removed

    def remove_files_for_endpoint(
        self, endpoint: Endpoint, action_chain_id: Optional[int] = None
    ) -> List[Path]:
        """Remove the chunk files of one chain, or of all chains, for ``endpoint``."""
        return self.files.delete_chunks(action_chain_id, endpoint.machine_id)
