"""
Block reference resolution for normalized drawings.

Handles INSERT entities and nested block references. Recursion carries the
chain of block names currently being expanded; an insert whose block is
already on that chain is a cycle and resolves to nothing.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Optional

from src.core.cad.dxf.entities import Block, Insert
from src.core.cad.geometry.transform import Affine2D

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32


def insert_transform(insert: Insert, block: Optional[Block] = None) -> Affine2D:
    """Transform mapping block-local coordinates to the insert's coordinate space."""
    base_point = block.base_point if block is not None else (0.0, 0.0)
    return Affine2D.placement(
        insert.position,
        insert.scale_x,
        insert.scale_y,
        insert.rotation,
        base_point,
    )


class BlockResolver:
    """Looks up blocks for inserts and guards against cyclic block graphs."""

    def __init__(self, blocks: Dict[str, Block], max_depth: int = DEFAULT_MAX_DEPTH):
        self._blocks = blocks
        self._max_depth = max_depth

    def enter(self, insert: Insert, chain: FrozenSet[str]) -> Optional[Block]:
        """
        Resolve the block an insert references.

        Args:
            insert: Insert entity
            chain: Names of the blocks currently being expanded

        Returns:
            The block, or None when it is unknown, cyclic or nested too deep
        """
        block = self._blocks.get(insert.block_name)
        if block is None:
            logger.debug(f"Insert references unknown block: {insert.block_name!r}")
            return None
        if insert.block_name in chain:
            logger.warning(
                f"Cyclic block reference ignored: {insert.block_name!r}",
                extra={"stage": "blocks"},
            )
            return None
        if len(chain) >= self._max_depth:
            logger.warning(
                f"Block nesting deeper than {self._max_depth} ignored: {insert.block_name!r}",
                extra={"stage": "blocks"},
            )
            return None
        return block
