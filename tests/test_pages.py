def test_owner_and_collaborator_can_read(client, alice, bob, page):
    for member in (alice, bob):
        response = client.get(f"/pages/{page['uuid']}", headers=member.headers)
        assert response.status_code == 200
        assert response.json()["title"] == "Roadmap"


def test_outsider_is_forbidden(client, make_member, page):
    carol = make_member("carol")

    assert client.get(f"/pages/{page['uuid']}", headers=carol.headers).status_code == 403
    assert client.get(f"/pages/{page['uuid']}/blocks", headers=carol.headers).status_code == 403


def test_unknown_page(client, alice):
    response = client.get("/pages/00000000-0000-0000-0000-000000000000", headers=alice.headers)

    assert response.status_code == 404


def test_only_owner_invites(client, make_member, bob, page):
    carol = make_member("carol")

    response = client.post(
        f"/pages/{page['uuid']}/collaborators",
        json={"user_id": carol.id, "role": "viewer"},
        headers=bob.headers,
    )

    assert response.status_code == 403


def test_viewer_cannot_write_blocks(client, make_member, alice, page):
    carol = make_member("carol")
    client.post(
        f"/pages/{page['uuid']}/collaborators",
        json={"user_id": carol.id, "role": "viewer"},
        headers=alice.headers,
    )

    assert client.get(f"/pages/{page['uuid']}/blocks", headers=carol.headers).status_code == 200
    response = client.post(f"/pages/{page['uuid']}/blocks", json={"type": "text"}, headers=carol.headers)
    assert response.status_code == 403
