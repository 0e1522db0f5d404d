import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class BlockType(Enum):
    """Kinds of content block a page can hold"""
    TEXT = "text"
    HEADING1 = "heading1"
    HEADING2 = "heading2"
    HEADING3 = "heading3"
    IMAGE = "image"
    LIST = "list"
    CODE = "code"
    QUOTE = "quote"
    DIVIDER = "divider"
    TABLE = "table"
    EMBED = "embed"
    FILE = "file"
    CHECKBOX = "checkbox"


class Block:
    """Node of a page's content tree.

    ``order`` only orders siblings sharing the same (page, parent) pair.
    ``version`` grows by one on every content/type/order update or move and is what
    optimistic writers compare against.
    """

    def __init__(
        self,
        uuid: uuid.UUID,
        page_id: uuid.UUID,
        type: BlockType,
        order: int,
        created_by: uuid.UUID,
        content: Optional[Dict[str, Any]] = None,
        parent_id: Optional[uuid.UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
        last_modified_by: Optional[uuid.UUID] = None,
        version: int = 1,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.page_id = page_id
        self.type = type
        self.content = content if content is not None else {}
        self.order = order
        self.parent_id = parent_id
        self.metadata = metadata if metadata is not None else {}
        self.created_by = created_by
        self.last_modified_by = last_modified_by or created_by
        self.version = version
        self.created_at = created_at or datetime.now(timezone.utc)
        self.updated_at = updated_at or datetime.now(timezone.utc)

    def apply_update(
        self,
        modified_by: uuid.UUID,
        content: Optional[Dict[str, Any]] = None,
        type: Optional[BlockType] = None,
        order: Optional[int] = None
    ) -> None:
        """Overwrite the given fields in place (last writer wins)"""
        if content is not None:
            self.content = content
        if type is not None:
            self.type = type
        if order is not None:
            self.order = order
        self.last_modified_by = modified_by
        self.version += 1
        self.updated_at = datetime.now(timezone.utc)

    @classmethod
    def create_block(
        cls,
        page_id: uuid.UUID,
        type: BlockType,
        order: int,
        created_by: uuid.UUID,
        content: Optional[Dict[str, Any]] = None,
        parent_id: Optional[uuid.UUID] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> "Block":
        return cls(
            uuid=uuid.uuid4(),
            page_id=page_id,
            type=type,
            order=order,
            created_by=created_by,
            content=content,
            parent_id=parent_id,
            metadata=metadata
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Block):
            return False
        return self.uuid == other.uuid

    def __repr__(self) -> str:
        return f"Block(uuid={self.uuid}, type={self.type.value}, order={self.order}, parent={self.parent_id})"


def sort_siblings(blocks: Iterable[Block]) -> List[Block]:
    return sorted(blocks, key=lambda block: (block.order, block.created_at))


def build_tree(blocks: Iterable[Block]) -> List[Dict[str, Any]]:
    """Nest a page's flat block list into ``{"block", "children"}`` nodes.

    Blocks whose parent is not in the list are dropped, like orphans of a
    half-finished cascade delete.
    """
    nodes = {block.uuid: {"block": block, "children": []} for block in blocks}
    roots = []

    for block in sort_siblings(node["block"] for node in nodes.values()):
        node = nodes[block.uuid]
        if block.parent_id is None:
            roots.append(node)
        elif block.parent_id in nodes:
            nodes[block.parent_id]["children"].append(node)

    return roots


def descendants_of(block_id: uuid.UUID, blocks: Iterable[Block]) -> List[uuid.UUID]:
    """Ids of every block below ``block_id`` (breadth first, root excluded)"""
    children: Dict[uuid.UUID, List[uuid.UUID]] = {}
    for block in blocks:
        if block.parent_id is not None:
            children.setdefault(block.parent_id, []).append(block.uuid)

    found = []
    queue = list(children.get(block_id, []))
    while queue:
        current = queue.pop(0)
        found.append(current)
        queue.extend(children.get(current, []))
    return found


def creates_cycle(block_id: uuid.UUID, new_parent_id: Optional[uuid.UUID], parents: Dict[uuid.UUID, Optional[uuid.UUID]]) -> bool:
    """Whether re-parenting ``block_id`` under ``new_parent_id`` makes it its own ancestor"""
    current = new_parent_id
    seen = set()
    while current is not None:
        if current == block_id or current in seen:
            return True
        seen.add(current)
        current = parents.get(current)
    return False


def document_order(blocks: Iterable[Block]) -> List[Block]:
    """Blocks in reading order: depth first, parents before their children"""
    ordered = []

    def walk(nodes):
        for node in nodes:
            ordered.append(node["block"])
            walk(node["children"])

    walk(build_tree(blocks))
    return ordered
