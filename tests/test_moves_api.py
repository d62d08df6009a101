from uuid import uuid4


def move_body(card_id, list_id, before_id=None, after_id=None) -> dict:
    return {
        "item_type": "card",
        "item_id": str(card_id),
        "destination_parent_id": str(list_id),
        "before_id": str(before_id) if before_id else None,
        "after_id": str(after_id) if after_id else None,
    }


async def test_move_returns_committed_result(
    api_client, auth_headers, alice, board_id, make_list, make_cards
):
    list_id = await make_list(board_id, "Todo", 1000.0)
    cards = await make_cards(list_id, A=1.0, B=2.0, C=3.0)

    response = await api_client.post(
        "/boards/moves",
        json=move_body(cards["C"], list_id, cards["A"], cards["B"]),
        headers=auth_headers(alice),
    )

    assert response.status_code == 200
    result = response.json()
    assert result["position"] == 1.5
    assert result["version"] == 2
    assert result["board_id"] == str(board_id)

    detail = (await api_client.get(f"/boards/{board_id}", headers=auth_headers(alice))).json()
    assert [card["title"] for card in detail["lists"][0]["cards"]] == ["A", "C", "B"]


async def test_non_member_move_is_forbidden(
    api_client, auth_headers, outsider, board_id, make_list, make_cards
):
    list_id = await make_list(board_id, "Todo", 1000.0)
    cards = await make_cards(list_id, A=1.0, B=2.0)

    response = await api_client.post(
        "/boards/moves", json=move_body(cards["B"], list_id, after_id=cards["A"]), headers=auth_headers(outsider)
    )

    assert response.status_code == 403


async def test_deleted_neighbor_is_not_found(
    api_client, auth_headers, alice, board_id, make_list, make_cards
):
    list_id = await make_list(board_id, "Todo", 1000.0)
    cards = await make_cards(list_id, A=1.0, B=2.0)
    await api_client.delete(f"/cards/{cards['A']}", headers=auth_headers(alice))

    response = await api_client.post(
        "/boards/moves", json=move_body(cards["B"], list_id, before_id=cards["A"]), headers=auth_headers(alice)
    )

    assert response.status_code == 404


async def test_stale_neighbor_is_conflict(
    api_client, auth_headers, alice, board_id, make_list, make_cards
):
    todo = await make_list(board_id, "Todo", 1000.0)
    done = await make_list(board_id, "Done", 2000.0)
    cards = await make_cards(todo, A=1.0, B=2.0)
    done_cards = await make_cards(done, D=1.0)

    response = await api_client.post(
        "/boards/moves", json=move_body(cards["A"], todo, before_id=done_cards["D"]), headers=auth_headers(alice)
    )

    assert response.status_code == 409


async def test_unknown_destination_is_invalid_target(
    api_client, auth_headers, alice, board_id, make_list, make_cards
):
    list_id = await make_list(board_id, "Todo", 1000.0)
    cards = await make_cards(list_id, A=1.0)

    response = await api_client.post(
        "/boards/moves", json=move_body(cards["A"], uuid4()), headers=auth_headers(alice)
    )

    assert response.status_code == 400


async def test_identical_neighbors_fail_validation(api_client, auth_headers, alice):
    same = uuid4()

    response = await api_client.post(
        "/boards/moves", json=move_body(uuid4(), uuid4(), same, same), headers=auth_headers(alice)
    )

    assert response.status_code == 422


async def test_move_is_broadcast_to_other_room_members(
    api_client, broadcaster, auth_headers, alice, bob, board_id, make_list, make_cards
):
    from app.services.board_connection import BoardConnection

    sent = []

    async def record(message):
        sent.append(message)

    async def ignore(message):
        pass

    origin = BoardConnection(ignore)
    viewer = BoardConnection(record)
    origin.authenticate(alice)
    viewer.authenticate(bob)
    broadcaster.join(board_id, origin)
    broadcaster.join(board_id, viewer)
    origin.start()
    viewer.start()

    list_id = await make_list(board_id, "Todo", 1000.0)
    cards = await make_cards(list_id, A=1.0, B=2.0)

    try:
        response = await api_client.post(
            "/boards/moves",
            json=move_body(cards["B"], list_id, after_id=cards["A"]),
            headers={**auth_headers(alice), "X-Connection-Id": origin.connection_id},
        )
        await viewer.flush()
    finally:
        await origin.close()
        await viewer.close()

    assert response.status_code == 200
    assert [message["type"] for message in sent] == ["room_members", "item_moved"]
    assert sent[-1]["data"]["item_id"] == str(cards["B"])
