"""Page identity and hierarchy tree models."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

CIRCULAR_REFERENCE_NAME = "(Circular Reference)"


@dataclass(frozen=True)
class PageIdentifier:
    """A page within a Coda doc."""

    doc_id: str
    page_id: str

    def __post_init__(self) -> None:
        if not self.doc_id or not self.page_id:
            raise ValueError("doc_id and page_id must be non-empty")

    def __str__(self) -> str:
        return f"{self.doc_id}:{self.page_id}"


@dataclass(frozen=True)
class HierarchyNode:
    """A page in the discovered tree.

    ``path`` encodes the position in traversal order ("0", "0.1", "0.1.2");
    child indexes are 1-based. Nodes own their children exclusively.
    """

    page_id: str
    doc_id: str
    name: str
    depth: int
    path: str
    children: tuple[HierarchyNode, ...] = ()
    updated_at: str | None = None
    """Last-modified marker reported by the API, if any."""

    is_circular_reference: bool = False
    """True for placeholder leaves emitted when a page is seen twice."""

    @property
    def identifier(self) -> PageIdentifier:
        """Identity of the page this node represents."""
        return PageIdentifier(doc_id=self.doc_id, page_id=self.page_id)

    @classmethod
    def circular_reference(cls, doc_id: str, page_id: str, depth: int, path: str) -> HierarchyNode:
        """Create a placeholder leaf for an already visited page."""
        return cls(
            page_id=page_id,
            doc_id=doc_id,
            name=CIRCULAR_REFERENCE_NAME,
            depth=depth,
            path=path,
            is_circular_reference=True,
        )

    def walk(self) -> Iterator[HierarchyNode]:
        """Yield this node and all descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class PageCountResult:
    """Outcome of hierarchy discovery."""

    tree: HierarchyNode
    total_pages: int = 0
    by_depth: dict[int, int] = field(default_factory=dict)
    max_depth_reached: int = 0

    @classmethod
    def from_tree(cls, tree: HierarchyNode) -> PageCountResult:
        """Compute aggregate counts with a full walk of ``tree``."""
        result = cls(tree=tree)
        for node in tree.walk():
            result.by_depth[node.depth] = result.by_depth.get(node.depth, 0) + 1
            result.total_pages += 1
            result.max_depth_reached = max(result.max_depth_reached, node.depth)
        return result
