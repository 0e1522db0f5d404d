import asyncio
import copy

import httpx
import pytest

from pageflow.client.agent import PageSyncAgent, SubscriptionState
from pageflow.core.errors import TransportLoss

PAGE = "page-1"
ALICE = {"id": "u-alice", "username": "alice", "avatar": None}
BOB = {"id": "u-bob", "username": "bob", "avatar": None}


def block(uuid, text="", order=0, parent_id=None):
    return {"uuid": uuid, "page_id": PAGE, "parent_id": parent_id, "order": order,
            "type": "text", "content": {"text": text}, "version": 1}


class FakeTransport:
    def __init__(self):
        self.user = ALICE
        self.connected = True
        self.sent = []
        self.listeners = []

    def subscribe(self, listener):
        self.listeners.append(listener)

    async def send(self, event_type, data):
        if not self.connected:
            raise TransportLoss("offline")
        self.sent.append((event_type, data))

    def types(self):
        return [event_type for event_type, _ in self.sent]


class FakeApi:
    def __init__(self, tree):
        self.tree = tree
        self.loads = 0
        self.updates = []

    async def get_blocks(self, page_id):
        self.loads += 1
        return copy.deepcopy(self.tree)

    async def update_block(self, block_id, content=None, type=None, base_version=None):
        self.updates.append((block_id, content))
        return dict(block(block_id), content=content, version=len(self.updates) + 1)

    async def create_block(self, page_id, type, content=None, parent_id=None, order=None):
        return dict(block("new", order=order or 0, parent_id=parent_id), type=type, content=content or {})

    async def delete_block(self, block_id):
        return [block_id]

    async def reorder_blocks(self, page_id, moves):
        by_id = {item["uuid"]: item for item in self.tree}
        return [dict(by_id[move["id"]], order=move["order"]) for move in moves]

    async def create_comment(self, page_id, content, block_id=None, parent_id=None):
        return {"uuid": "c1", "content": content, "block_id": block_id, "is_resolved": False}

    async def resolve_comment(self, comment_id):
        return {"uuid": comment_id, "content": "x", "is_resolved": True}


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def api():
    return FakeApi([block("a", "alpha", 0), block("b", "beta", 1)])


@pytest.fixture
async def agent(api, transport):
    agent = PageSyncAgent(PAGE, api, transport, debounce=0.05)
    await agent.join()
    agent.handle_event("joined-page", {"pageId": PAGE, "participants": [ALICE], "presence": []})
    transport.sent.clear()
    return agent


async def test_join_reloads_then_subscribes(api, transport):
    agent = PageSyncAgent(PAGE, api, transport)

    await agent.join()

    assert agent.status == SubscriptionState.JOINING
    assert api.loads == 1
    assert agent.state.block_ids() == ["a", "b"]
    assert transport.sent == [("join-page", {"pageId": PAGE})]

    agent.handle_event("joined-page", {
        "pageId": PAGE,
        "participants": [ALICE, BOB],
        "presence": [
            {"user": BOB, "isTyping": True, "blockId": "a", "cursor": None},
            {"user": ALICE, "isTyping": False, "blockId": None, "cursor": None},
        ],
    })

    assert agent.status == SubscriptionState.JOINED
    assert list(agent.state.presence) == ["u-bob"]


async def test_edits_stay_local_until_joined(api, transport):
    agent = PageSyncAgent(PAGE, api, transport, debounce=0.01)
    await agent.join()
    transport.sent.clear()

    await agent.edit_block("a", {"text": "early"})
    await asyncio.sleep(0.05)

    assert api.updates == [("a", {"text": "early"})]
    assert transport.sent == []


async def test_burst_is_debounced_into_one_write(agent, api, transport):
    for text in ("H", "He", "Hel", "Hello"):
        await agent.edit_block("a", {"text": text})
        await asyncio.sleep(0.01)

    assert agent.state.get("a")["content"] == {"text": "Hello"}
    assert api.updates == []

    await asyncio.sleep(0.15)

    assert api.updates == [("a", {"text": "Hello"})]
    assert transport.types() == ["typing-start", "block-update", "typing-stop"]
    assert transport.sent[1][1] == {"pageId": PAGE, "blockId": "a", "content": {"text": "Hello"}, "type": "text"}
    assert agent.state.pending == {}


async def test_typing_stops_after_last_block_is_saved(agent, api, transport):
    await agent.edit_block("a", {"text": "one"})
    await asyncio.sleep(0.03)
    await agent.edit_block("b", {"text": "two"})
    await asyncio.sleep(0.2)

    assert [block_id for block_id, _ in api.updates] == ["a", "b"]
    assert transport.types() == ["typing-start", "block-update", "block-update", "typing-stop"]


async def test_flush_saves_immediately(agent, api, transport):
    await agent.edit_block("a", {"text": "bye"})

    await agent.flush()

    assert api.updates == [("a", {"text": "bye"})]
    assert transport.types() == ["typing-start", "block-update", "typing-stop"]
    await asyncio.sleep(0.1)
    assert len(api.updates) == 1


async def test_remote_update_applies_unless_pending(agent):
    agent.handle_event("block-updated", {"pageId": PAGE, "blockId": "b", "content": {"text": "remote"}, "user": BOB})
    await agent.edit_block("a", {"text": "local"})
    agent.handle_event("block-updated", {"pageId": PAGE, "blockId": "a", "content": {"text": "remote"}, "user": BOB})

    assert agent.state.get("b")["content"] == {"text": "remote"}
    assert agent.state.get("a")["content"] == {"text": "local"}
    await agent.flush()


async def test_events_for_unknown_blocks_or_other_pages_are_ignored(agent):
    before = copy.deepcopy(agent.state.blocks)

    agent.handle_event("block-updated", {"pageId": PAGE, "blockId": "ghost", "content": {"text": "x"}, "user": BOB})
    agent.handle_event("block-deleted", {"pageId": PAGE, "blockId": "ghost", "user": BOB})
    agent.handle_event("block-deleted", {"pageId": "other", "blockId": "a", "user": BOB})

    assert agent.state.blocks == before


async def test_remote_delete_cancels_pending_edit(agent, api, transport):
    await agent.edit_block("a", {"text": "doomed"})

    agent.handle_event("block-deleted", {"pageId": PAGE, "blockId": "a", "user": BOB})
    await asyncio.sleep(0.1)

    assert agent.state.block_ids() == ["b"]
    assert api.updates == []

    transport.sent.clear()
    await agent.edit_block("a", {"text": "too late"})
    await asyncio.sleep(0.1)

    assert transport.sent == []
    assert api.updates == []
    assert agent.state.block_ids() == ["b"]


async def test_remote_create_appends_once(agent):
    created = block("c", "gamma", 2)

    agent.handle_event("block-created", {"pageId": PAGE, "blockData": created, "user": BOB})
    agent.handle_event("block-created", {"pageId": PAGE, "blockData": created, "user": BOB})

    assert agent.state.block_ids() == ["a", "b", "c"]


async def test_remote_reorder_keeps_pending_content(agent):
    await agent.edit_block("a", {"text": "unsaved"})

    agent.handle_event("blocks-reordered", {"pageId": PAGE, "blocks": [block("b", "beta", 0), block("a", "alpha", 1)], "user": BOB})

    assert agent.state.block_ids() == ["b", "a"]
    assert agent.state.get("a")["content"] == {"text": "unsaved"}
    await agent.flush()


async def test_structural_ops_persist_before_emitting(agent, transport):
    created = await agent.create_block("heading1", {"text": "Title"})
    await agent.delete_block("b")
    blocks = await agent.reorder_blocks([{"id": "a", "order": 0}])

    assert agent.state.block_ids() == ["a"]
    assert created["uuid"] == "new"
    assert transport.types() == ["block-create", "block-delete", "block-reorder"]
    assert transport.sent[0][1]["blockData"]["type"] == "heading1"
    assert transport.sent[1][1] == {"pageId": PAGE, "blockId": "b"}
    assert transport.sent[2][1]["blocks"] == blocks


async def test_comment_ops_emit_events(agent, transport):
    await agent.add_comment("looks good", block_id="a")
    await agent.resolve_comment("c1")

    assert transport.sent == [
        ("comment-add", {"pageId": PAGE, "commentData": {"uuid": "c1", "content": "looks good", "block_id": "a", "is_resolved": False}}),
        ("comment-resolve", {"pageId": PAGE, "commentId": "c1", "isResolved": True}),
    ]


async def test_presence_events(agent):
    agent.handle_event("user-typing", {"pageId": PAGE, "user": BOB, "isTyping": True, "blockId": "a"})
    agent.handle_event("cursor-moved", {"pageId": PAGE, "user": BOB, "cursor": {"offset": 3}})

    assert agent.state.typing_users() == [BOB]
    assert agent.state.presence["u-bob"]["cursor"] == {"offset": 3}

    agent.handle_event("user-left-page", {"pageId": PAGE, "user": BOB})

    assert agent.state.presence == {}


async def test_transport_loss_rejoins_with_full_reload(agent, api, transport):
    await agent.edit_block("a", {"text": "lost"})
    transport.connected = False

    agent.handle_disconnected()

    assert agent.status == SubscriptionState.DISCONNECTED
    await asyncio.sleep(0.1)
    assert api.updates == []

    api.tree = [block("a", "server copy", 0), block("b", "beta", 1), block("c", "added while away", 2)]
    transport.connected = True
    transport.sent.clear()
    await agent.handle_connected()

    assert api.loads == 2
    assert agent.status == SubscriptionState.JOINING
    assert agent.state.get("a")["content"] == {"text": "server copy"}
    assert agent.state.block_ids() == ["a", "b", "c"]
    assert transport.sent == [("join-page", {"pageId": PAGE})]


async def test_failed_rejoin_is_retried_on_next_connect(agent, api, transport):
    agent.handle_disconnected()
    transport.sent.clear()

    async def unreachable(page_id):
        raise httpx.ConnectError("REST down during rejoin")

    reachable = api.get_blocks
    api.get_blocks = unreachable
    await agent.handle_connected()

    assert agent.status == SubscriptionState.DISCONNECTED
    assert transport.sent == []

    api.get_blocks = reachable
    await agent.handle_connected()

    assert agent.status == SubscriptionState.JOINING
    assert transport.sent == [("join-page", {"pageId": PAGE})]


async def test_leave_flushes_and_unsubscribes(agent, api, transport):
    await agent.edit_block("a", {"text": "last words"})

    await agent.leave()

    assert api.updates == [("a", {"text": "last words"})]
    assert transport.types()[-1] == "leave-page"
    assert agent.status == SubscriptionState.DISCONNECTED

    await agent.handle_connected()
    assert api.loads == 1
