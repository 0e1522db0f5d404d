from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import asyncio
import logging

import httpx

from pageflow.client.api import PagesApiClient
from pageflow.client.state import LocalPageState
from pageflow.core.errors import TransportLoss

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 1.0


class SubscriptionState(str, Enum):
    DISCONNECTED = "disconnected"
    JOINING = "joining"
    JOINED = "joined"
    LEAVING = "leaving"


class PageSyncAgent:
    """Keeps one participant's copy of a page in step with everybody else's.

    Writes go to the REST API first; only after they are persisted is the
    matching event sent to the page room. Content edits are shown locally at
    once and saved after ``debounce`` seconds of quiet per block.
    """

    def __init__(self, page_id: str, api: PagesApiClient, transport, debounce: float = DEFAULT_DEBOUNCE, auto_rejoin: bool = True):
        self.page_id = str(page_id)
        self.api = api
        self.transport = transport
        self.debounce = debounce
        self.auto_rejoin = auto_rejoin
        self.state = LocalPageState()
        self.status = SubscriptionState.DISCONNECTED
        self._wants_page = False
        self._typing = False
        self._timers: Dict[str, asyncio.Task] = {}
        self._handlers: Dict[str, Callable[[Dict[str, Any]], None]] = {
            "joined-page": self._on_joined_page,
            "user-left-page": self._on_user_left,
            "block-updated": self._on_block_updated,
            "block-created": self._on_block_created,
            "block-deleted": self._on_block_deleted,
            "blocks-reordered": self._on_blocks_reordered,
            "user-typing": self._on_user_typing,
            "cursor-moved": self._on_cursor_moved,
        }
        transport.subscribe(self)

    # ---------- subscription ----------

    async def join(self) -> None:
        """Reload the whole page over REST, then subscribe to its room"""
        self._wants_page = True
        self.status = SubscriptionState.JOINING
        self._cancel_timers()
        tree = await self.api.get_blocks(self.page_id)
        self.state.load(tree)
        await self.transport.send("join-page", {"pageId": self.page_id})

    async def leave(self) -> None:
        await self.flush()
        self._wants_page = False
        if self.status == SubscriptionState.JOINED:
            self.status = SubscriptionState.LEAVING
            try:
                await self.transport.send("leave-page", {"pageId": self.page_id})
            except TransportLoss as e:
                logger.info(f"Leave of page {self.page_id} not delivered: {e}")
        self.status = SubscriptionState.DISCONNECTED

    async def handle_connected(self) -> None:
        if self._wants_page and self.auto_rejoin:
            logger.info(f"Rejoining page {self.page_id}")
            try:
                await self.join()
            except (httpx.HTTPError, TransportLoss) as e:
                # Retried on the next ``connected``
                logger.error(f"Rejoining page {self.page_id} failed: {e}")
                self.status = SubscriptionState.DISCONNECTED

    def handle_disconnected(self) -> None:
        if self.status == SubscriptionState.DISCONNECTED:
            return
        logger.info(f"Lost page {self.page_id}; {len(self.state.pending)} unsaved edits dropped")
        self.status = SubscriptionState.DISCONNECTED
        self._cancel_timers()
        self._typing = False

    async def _emit(self, event_type: str, data: Dict[str, Any]) -> bool:
        if self.status != SubscriptionState.JOINED:
            logger.debug(f"Not joined, {event_type} kept local")
            return False
        try:
            await self.transport.send(event_type, {"pageId": self.page_id, **data})
        except TransportLoss as e:
            logger.info(f"Could not emit {event_type}: {e}")
            return False
        return True

    # ---------- content edits ----------

    async def edit_block(self, block_id: str, content: Dict[str, Any], type: Optional[str] = None) -> None:
        """Show an edit now and save it once the user pauses"""
        block_id = str(block_id)
        if self.state.apply_local_edit(block_id, content, type) is None:
            logger.debug(f"Ignoring edit of unknown block {block_id}")
            return

        if not self._typing:
            self._typing = True
            await self._emit("typing-start", {"blockId": block_id})

        timer = self._timers.pop(block_id, None)
        if timer is not None:
            timer.cancel()
        self._timers[block_id] = asyncio.create_task(self._save_later(block_id))

    async def _save_later(self, block_id: str) -> None:
        await asyncio.sleep(self.debounce)
        self._timers.pop(block_id, None)
        await self._persist(block_id)
        if not self._timers and self._typing:
            self._typing = False
            await self._emit("typing-stop", {})

    async def _persist(self, block_id: str) -> None:
        edit = self.state.pending.get(block_id)
        if edit is None:
            return
        try:
            saved = await self.api.update_block(block_id, content=edit["content"], type=edit["type"])
        except httpx.HTTPError as e:
            logger.error(f"Saving block {block_id} failed: {e}")
            self.state.settle(block_id, edit)
            return
        self.state.settle(block_id, edit, saved)
        await self._emit("block-update", {
            "blockId": block_id,
            "content": edit["content"],
            "type": edit["type"] or saved.get("type")
        })

    async def flush(self) -> None:
        """Save every pending edit right away"""
        self._cancel_timers()
        for block_id in list(self.state.pending):
            await self._persist(block_id)
        if self._typing:
            self._typing = False
            await self._emit("typing-stop", {})

    def _cancel_timers(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    def _drop_blocks(self, block_ids: List[str]) -> None:
        for block_id in block_ids:
            timer = self._timers.pop(block_id, None)
            if timer is not None:
                timer.cancel()

    # ---------- structure ----------

    async def create_block(
        self,
        type: str,
        content: Optional[Dict[str, Any]] = None,
        parent_id: Optional[str] = None,
        order: Optional[int] = None
    ) -> Dict[str, Any]:
        block = await self.api.create_block(self.page_id, type, content, parent_id=parent_id, order=order)
        self.state.add_block(block)
        await self._emit("block-create", {"blockData": block})
        return block

    async def delete_block(self, block_id: str) -> List[str]:
        block_id = str(block_id)
        deleted = await self.api.delete_block(block_id)
        self._drop_blocks(self.state.remove_block(block_id))
        await self._emit("block-delete", {"blockId": block_id})
        return deleted

    async def reorder_blocks(self, moves: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Send a batch of ``{id, order, parent_id}`` moves; peers get the full list back"""
        blocks = await self.api.reorder_blocks(self.page_id, moves)
        self.state.replace_blocks(blocks)
        await self._emit("block-reorder", {"blocks": blocks})
        return blocks

    # ---------- comments ----------

    async def add_comment(self, content: str, block_id: Optional[str] = None, parent_id: Optional[str] = None) -> Dict[str, Any]:
        comment = await self.api.create_comment(self.page_id, content, block_id=block_id, parent_id=parent_id)
        await self._emit("comment-add", {"commentData": comment})
        return comment

    async def update_comment(self, comment_id: str, content: str) -> Dict[str, Any]:
        comment = await self.api.update_comment(comment_id, content)
        await self._emit("comment-update", {"commentId": str(comment_id), "content": comment["content"]})
        return comment

    async def delete_comment(self, comment_id: str) -> List[str]:
        deleted = await self.api.delete_comment(comment_id)
        await self._emit("comment-delete", {"commentId": str(comment_id)})
        return deleted

    async def resolve_comment(self, comment_id: str) -> Dict[str, Any]:
        comment = await self.api.resolve_comment(comment_id)
        await self._emit("comment-resolve", {"commentId": str(comment_id), "isResolved": comment["is_resolved"]})
        return comment

    async def move_cursor(self, cursor: Any) -> None:
        await self._emit("cursor-move", {"cursor": cursor})

    # ---------- inbound ----------

    def handle_event(self, event_type: str, data: Dict[str, Any]) -> None:
        if data.get("pageId") not in (None, self.page_id):
            return
        handler = self._handlers.get(event_type)
        if handler is not None:
            handler(data)

    def _on_joined_page(self, data: Dict[str, Any]) -> None:
        if self.status != SubscriptionState.JOINING:
            return
        self.status = SubscriptionState.JOINED
        self.state.load_presence(entry for entry in data.get("presence", []) if entry["user"]["id"] != self._own_id())
        logger.info(f"Joined page {self.page_id} with {len(data.get('participants', []))} participants")

    def _own_id(self) -> Optional[str]:
        user = self.transport.user
        return user["id"] if user else None

    def _on_user_left(self, data: Dict[str, Any]) -> None:
        self.state.clear_user(data["user"]["id"])

    def _on_block_updated(self, data: Dict[str, Any]) -> None:
        if not self.state.apply_remote_update(str(data["blockId"]), data.get("content"), data.get("type")):
            logger.debug(f"Remote update of {data['blockId']} skipped")

    def _on_block_created(self, data: Dict[str, Any]) -> None:
        self.state.add_block(data["blockData"])

    def _on_block_deleted(self, data: Dict[str, Any]) -> None:
        block_id = str(data["blockId"])
        self._drop_blocks(self.state.remove_block(block_id))

    def _on_blocks_reordered(self, data: Dict[str, Any]) -> None:
        self.state.replace_blocks(data["blocks"])

    def _on_user_typing(self, data: Dict[str, Any]) -> None:
        self.state.set_typing(data["user"], data["isTyping"], data.get("blockId"))

    def _on_cursor_moved(self, data: Dict[str, Any]) -> None:
        self.state.set_cursor(data["user"], data.get("cursor"))
