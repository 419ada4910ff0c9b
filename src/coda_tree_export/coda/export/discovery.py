"""Page hierarchy discovery.

Walks a page and its subpages up to a depth limit and builds an immutable
tree. A page seen a second time in the same run becomes a placeholder leaf
instead of being fetched again, which also breaks reference cycles.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING

from coda_tree_export.config import ExportDepth
from coda_tree_export.logging import get_logger
from coda_tree_export.schemas.coda_api import PageReference
from coda_tree_export.schemas.hierarchy import HierarchyNode, PageCountResult, PageIdentifier

if TYPE_CHECKING:
    from coda_tree_export.coda.client import CodaClient

logger = get_logger(__name__)


class _TraversalContext:
    """State scoped to a single discovery run."""

    def __init__(self, doc_id: str, max_depth: ExportDepth) -> None:
        self.doc_id = doc_id
        self.max_depth = max_depth
        self.visited: set[str] = set()

    def may_descend(self, depth: int) -> bool:
        return self.max_depth == "unlimited" or depth < self.max_depth


class HierarchyDiscoverer:
    """Builds the page tree below a root page.

    Usage:
        discoverer = HierarchyDiscoverer(client)
        result = await discoverer.discover(PageIdentifier("AbCdEf", "canvas-1"), 2)
        print(result.total_pages, result.by_depth)
    """

    def __init__(self, client: CodaClient) -> None:
        self._client = client

    async def discover(self, root: PageIdentifier, max_depth: ExportDepth) -> PageCountResult:
        """Discover the tree below ``root``.

        Args:
            root: Page to start from (depth 0, path "0")
            max_depth: Deepest level to include, or "unlimited"

        Returns:
            The tree with aggregate counts

        Raises:
            CodaClientError: If any page fetch fails (the whole run aborts)
        """
        context = _TraversalContext(root.doc_id, max_depth)
        tree = await self._visit(context, root.page_id, depth=0, path="0")
        result = PageCountResult.from_tree(tree)
        logger.info(
            "Discovered {} pages in {} (max depth {})",
            result.total_pages,
            root.doc_id,
            result.max_depth_reached,
        )
        return result

    async def _visit(
        self,
        context: _TraversalContext,
        page_id: str,
        *,
        depth: int,
        path: str,
    ) -> HierarchyNode:
        if page_id in context.visited:
            logger.debug("Page {} already visited, emitting placeholder at {}", page_id, path)
            return HierarchyNode.circular_reference(context.doc_id, page_id, depth, path)
        context.visited.add(page_id)

        page = await self._client.get_page(context.doc_id, page_id)

        children: tuple[HierarchyNode, ...] = ()
        if page.children and context.may_descend(depth):
            children = await self._visit_children(context, page.children, depth=depth, path=path)

        return HierarchyNode(
            page_id=page.id,
            doc_id=context.doc_id,
            name=page.name,
            depth=depth,
            path=path,
            children=children,
            updated_at=page.updated_at,
        )

    async def _visit_children(
        self,
        context: _TraversalContext,
        children: list[PageReference],
        *,
        depth: int,
        path: str,
    ) -> tuple[HierarchyNode, ...]:
        """Visit children concurrently, in order.

        The first failure cancels the remaining siblings and is raised as is.
        """
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(
                        self._visit(context, child.id, depth=depth + 1, path=f"{path}.{index}")
                    )
                    for index, child in enumerate(children, start=1)
                ]
        except ExceptionGroup as e:
            raise e.exceptions[0] from None
        return tuple(task.result() for task in tasks)


def flatten_breadth_first(tree: HierarchyNode) -> list[HierarchyNode]:
    """List every node level by level, in child order within a level."""
    nodes: list[HierarchyNode] = []
    queue: deque[HierarchyNode] = deque([tree])
    while queue:
        node = queue.popleft()
        nodes.append(node)
        queue.extend(node.children)
    return nodes


def group_by_depth(tree: HierarchyNode) -> dict[int, list[HierarchyNode]]:
    """Group nodes by depth, each group in tree order."""
    groups: dict[int, list[HierarchyNode]] = {}
    for node in tree.walk():
        groups.setdefault(node.depth, []).append(node)
    return groups
