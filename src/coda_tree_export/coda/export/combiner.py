"""Combines exported pages into one document in tree order."""

from __future__ import annotations

from collections.abc import Mapping

from coda_tree_export.schemas.hierarchy import HierarchyNode

RULE = "=" * 80


class ContentCombiner:
    """Concatenates page content with a banner per page.

    Output order is the pre-order of the tree, independent of the order in
    which exports completed.
    """

    def combine(self, content_by_page_id: Mapping[str, str], tree: HierarchyNode) -> str:
        """Build the combined document.

        Args:
            content_by_page_id: Exported content keyed by page id
            tree: Discovered page tree

        Returns:
            Combined document (empty when no page has content)
        """
        parts: list[str] = []
        for node in tree.walk():
            if node.is_circular_reference:
                continue
            content = content_by_page_id.get(node.page_id)
            if not content:
                continue
            parts.append(self.banner(node))
            parts.append(content)
        return "".join(parts)

    @staticmethod
    def banner(node: HierarchyNode) -> str:
        """Separator block announcing a page."""
        return (
            f"\n\n{RULE}\n"
            f"Page: {node.name}\n"
            f"Path: {node.path}\n"
            f"Depth: {node.depth}\n"
            f"{RULE}\n\n"
        )
