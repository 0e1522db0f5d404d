from pageflow.client.state import LocalPageState, flatten_tree


def block(uuid, text="", parent_id=None, order=0, type="text"):
    return {"uuid": uuid, "parent_id": parent_id, "order": order, "type": type, "content": {"text": text}}


def loaded(*blocks):
    state = LocalPageState()
    state.load(list(blocks))
    return state


def test_flatten_puts_parents_before_children():
    tree = [dict(block("a"), children=[dict(block("a1", parent_id="a"), children=[])]), dict(block("b"), children=[])]

    assert [item["uuid"] for item in flatten_tree(tree)] == ["a", "a1", "b"]
    assert "children" not in flatten_tree(tree)[0]


def test_remote_update_merges_content():
    state = loaded(block("a", "old"))

    assert state.apply_remote_update("a", {"text": "new"}, "heading1") is True
    assert state.get("a")["content"] == {"text": "new"}
    assert state.get("a")["type"] == "heading1"


def test_remote_update_skipped_while_local_edit_pending():
    state = loaded(block("a", "old"))
    state.apply_local_edit("a", {"text": "mine"})

    assert state.apply_remote_update("a", {"text": "theirs"}) is False
    assert state.get("a")["content"] == {"text": "mine"}


def test_remote_update_of_unknown_block_is_noop():
    state = loaded(block("a"))

    assert state.apply_remote_update("zzz", {"text": "x"}) is False
    assert state.block_ids() == ["a"]


def test_settle_keeps_newer_edit():
    state = loaded(block("a"))
    first = state.apply_local_edit("a", {"text": "one"})
    state.apply_local_edit("a", {"text": "two"})

    state.settle("a", first, {"uuid": "a", "version": 2, "content": {"text": "one"}})

    assert "a" in state.pending
    assert state.get("a")["content"] == {"text": "two"}


def test_settle_takes_server_copy():
    state = loaded(block("a"))
    edit = state.apply_local_edit("a", {"text": "one"})

    state.settle("a", edit, {"uuid": "a", "version": 2, "content": {"text": "one"}})

    assert state.pending == {}
    assert state.get("a")["version"] == 2


def test_create_is_ignored_when_present():
    state = loaded(block("a"))

    assert state.add_block(block("b")) is True
    assert state.add_block(block("b", "dup")) is False
    assert state.block_ids() == ["a", "b"]


def test_delete_removes_descendants_and_pending():
    state = loaded(block("a"), block("a1", parent_id="a"), block("a1x", parent_id="a1"), block("b"))
    state.apply_local_edit("a1", {"text": "typing"})

    assert state.remove_block("a") == ["a", "a1", "a1x"]
    assert state.block_ids() == ["b"]
    assert state.pending == {}
    assert state.remove_block("a") == []


def test_reorder_replaces_list_and_overlays_pending():
    state = loaded(block("a", "a"), block("b", "b"))
    state.apply_local_edit("b", {"text": "b edited"})

    state.replace_blocks([block("b", "b", order=0), block("a", "a", order=1)])

    assert state.block_ids() == ["b", "a"]
    assert state.get("b")["content"] == {"text": "b edited"}


def test_reorder_payload_converges_everywhere():
    payload = [block("c", order=0), block("a", order=1), block("b", order=2)]
    first = loaded(block("a"), block("b"), block("c"))
    second = loaded(block("b"), block("c"), block("a"))

    first.replace_blocks(payload)
    second.replace_blocks(payload)

    assert first.blocks == second.blocks


def test_presence_view():
    state = loaded(block("a"))
    bob = {"id": "u-bob", "username": "bob", "avatar": None}

    state.set_typing(bob, True, "a")
    state.set_cursor(bob, {"offset": 2})

    assert state.typing_users() == [bob]
    assert state.presence["u-bob"]["cursor"] == {"offset": 2}

    state.set_typing(bob, False)
    assert state.typing_users() == []

    state.clear_user("u-bob")
    assert state.presence == {}
