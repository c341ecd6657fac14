from __future__ import annotations
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field

class EndpointModel(BaseModel):
    # Endpoint the chain runs on
    machine_id: str = Field(min_length=1)
    minion_id: str = ''
    push_mode: bool = False

class ChainDocument(BaseModel):
    # Input document for `chain render`: one chain, one endpoint
    schema_version: str = Field(default='0.1.0')
    chain_id: int = Field(ge=0)
    endpoint: EndpointModel
    extra_filerefs: Optional[str] = None
    states: List[Dict[str, Any]] = Field(default_factory=list)

class ChunkReport(BaseModel):
    # Result of generating the chunk files of one endpoint
    schema_version: str = Field(default='0.1.0')
    chain_id: int
    machine_id: str
    chunks: int
    files: List[str] = Field(default_factory=list)

class StateIdRecord(BaseModel):
    # Decoded action chain state id
    action_chain_id: int
    action_id: int
    chunk: int
