"""
Action chain chunking and chunk file lifecycle.

Exports the public API:
- ActionChainGenerator
- ChunkPlanner
- ActionChain, Action, Endpoint
- ActionChainStateId, create_state_id, parse_state_id
"""
from .types import Action, ActionChain, Endpoint
from .stateid import ActionChainStateId, create_state_id, parse_state_id
from .planner import ChunkPlanner
from .generator import ActionChainGenerator
