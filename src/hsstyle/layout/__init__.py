"""
hsstyle.layout - Indentation-sensitive block structure

Builds a tree of LayoutBlocks (where, do, case, let, records, lists, import
groups) from scanned spans.
"""

from hsstyle.layout.blocks import (
    BINDING_CONTEXTS,
    BlockKind,
    LayoutBlock,
    LayoutItem,
)
from hsstyle.layout.tracker import (
    LAYOUT_KEYWORDS,
    LayoutError,
    LayoutErrorKind,
    LayoutResult,
    LayoutTracker,
    build_layout,
)

__all__ = [
    # Blocks
    "BINDING_CONTEXTS",
    "BlockKind",
    "LayoutBlock",
    "LayoutItem",
    # Tracker
    "LAYOUT_KEYWORDS",
    "LayoutError",
    "LayoutErrorKind",
    "LayoutResult",
    "LayoutTracker",
    "build_layout",
]
