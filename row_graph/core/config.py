"""Graph configuration.

GraphConfig is a Pydantic model shared by the relationship graph builder,
the materializer and the batch merge loader.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class GraphConfig(BaseModel):
    """Configuration for relationship graphs and batch merges."""

    strict: bool = False
    require_element_type: bool = True
    require_initialized_collections: bool = True
    merge_cache_size: int = Field(default=1000, ge=1)
