from typing import Any, Dict, Iterable, List, Optional
import copy


def flatten_tree(nodes: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Depth-first flattening of a ``children`` tree, parents before children"""
    flat = []
    for node in nodes:
        block = {key: value for key, value in node.items() if key != "children"}
        flat.append(block)
        flat.extend(flatten_tree(node.get("children") or []))
    return flat


class LocalPageState:
    """One participant's view of a page: blocks, unsaved edits and peers' presence"""

    def __init__(self):
        self.blocks: List[Dict[str, Any]] = []
        self.pending: Dict[str, Dict[str, Any]] = {}
        self.presence: Dict[str, Dict[str, Any]] = {}

    def load(self, tree: Iterable[Dict[str, Any]]) -> None:
        """Replace everything with a freshly fetched tree"""
        self.blocks = flatten_tree(tree)
        self.pending.clear()
        self.presence.clear()

    def index_of(self, block_id: str) -> Optional[int]:
        for index, block in enumerate(self.blocks):
            if str(block["uuid"]) == block_id:
                return index
        return None

    def get(self, block_id: str) -> Optional[Dict[str, Any]]:
        index = self.index_of(block_id)
        return self.blocks[index] if index is not None else None

    def block_ids(self) -> List[str]:
        return [str(block["uuid"]) for block in self.blocks]

    # ---------- local edits ----------

    def apply_local_edit(self, block_id: str, content: Dict[str, Any], type: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Show an edit immediately and remember it until it is persisted"""
        block = self.get(block_id)
        if block is None:
            return None
        block["content"] = content
        if type is not None:
            block["type"] = type
        edit = {"content": content, "type": type}
        self.pending[block_id] = edit
        return edit

    def settle(self, block_id: str, edit: Dict[str, Any], saved: Optional[Dict[str, Any]] = None) -> None:
        """Forget a persisted edit unless a newer one replaced it meanwhile"""
        if self.pending.get(block_id) is edit:
            del self.pending[block_id]
            block = self.get(block_id)
            if block is not None and saved is not None:
                block.update({key: value for key, value in saved.items() if key != "children"})

    # ---------- remote changes ----------

    def apply_remote_update(self, block_id: str, content: Optional[Dict[str, Any]], type: Optional[str] = None) -> bool:
        if block_id in self.pending:
            return False
        block = self.get(block_id)
        if block is None:
            return False
        if content is not None:
            block["content"] = content
        if type is not None:
            block["type"] = type
        return True

    def add_block(self, block: Dict[str, Any]) -> bool:
        if self.index_of(str(block["uuid"])) is not None:
            return False
        self.blocks.append(copy.deepcopy(block))
        return True

    def remove_block(self, block_id: str) -> List[str]:
        """Drop a block and its local descendants; returns the removed ids"""
        if self.index_of(block_id) is None:
            return []
        removed = {block_id}
        changed = True
        while changed:
            changed = False
            for block in self.blocks:
                block_uuid = str(block["uuid"])
                if block_uuid not in removed and block.get("parent_id") is not None and str(block["parent_id"]) in removed:
                    removed.add(block_uuid)
                    changed = True
        self.blocks = [block for block in self.blocks if str(block["uuid"]) not in removed]
        for removed_id in removed:
            self.pending.pop(removed_id, None)
        return sorted(removed)

    def replace_blocks(self, blocks: Iterable[Dict[str, Any]]) -> None:
        """Take a full ordered list as-is, keeping unsaved local content on top"""
        self.blocks = [copy.deepcopy(block) for block in blocks]
        for block_id, edit in self.pending.items():
            block = self.get(block_id)
            if block is None:
                continue
            block["content"] = edit["content"]
            if edit["type"] is not None:
                block["type"] = edit["type"]

    # ---------- presence ----------

    def _presence_of(self, user: Dict[str, Any]) -> Dict[str, Any]:
        entry = self.presence.setdefault(str(user["id"]), {"user": user, "isTyping": False, "blockId": None, "cursor": None})
        entry["user"] = user
        return entry

    def set_typing(self, user: Dict[str, Any], is_typing: bool, block_id: Optional[str] = None) -> None:
        entry = self._presence_of(user)
        entry["isTyping"] = is_typing
        entry["blockId"] = block_id if is_typing else None

    def set_cursor(self, user: Dict[str, Any], cursor: Any) -> None:
        self._presence_of(user)["cursor"] = cursor

    def load_presence(self, entries: Iterable[Dict[str, Any]]) -> None:
        self.presence.clear()
        for entry in entries:
            state = self._presence_of(entry["user"])
            state["isTyping"] = entry.get("isTyping", False)
            state["blockId"] = entry.get("blockId")
            state["cursor"] = entry.get("cursor")

    def clear_user(self, user_id: str) -> None:
        self.presence.pop(str(user_id), None)

    def typing_users(self) -> List[Dict[str, Any]]:
        return [entry["user"] for entry in self.presence.values() if entry["isTyping"]]
