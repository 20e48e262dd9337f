from __future__ import annotations

import pytest


async def _create(client, first_name, tags=()):
    response = await client.post(
        "/api/v1/contacts",
        json={"first_name": first_name, "last_name": "Lee", "tags": list(tags)},
    )
    assert response.status_code == 201
    return response.json()["data"]["id"]


@pytest.mark.anyio("asyncio")
async def test_activity_feed_and_hidden_contacts(client):
    ann_id = await _create(client, "Ann")
    bo_id = await _create(client, "Bo")
    await client.put(f"/api/v1/contacts/{ann_id}", json={"title": "CTO"})
    await client.put(f"/api/v1/contacts/{ann_id}", json={"title": "CEO"})
    await client.put(f"/api/v1/contacts/{bo_id}", json={"title": "Chef"})

    feed = (await client.get("/api/v1/activity")).json()["data"]
    assert feed["has_more"] is False
    assert [item["type"] for item in feed["activities"]] == [
        "contact_edited",
        "contact_edited_group",
    ]
    assert feed["activities"][0]["contact"]["changes"]["title"] == {"from": None, "to": "Chef"}
    assert feed["activities"][1]["group"]["edit_count"] == 2

    hide = await client.put(f"/api/v1/activity/hidden/{ann_id}")
    assert hide.status_code == 200
    assert hide.json()["data"] == {"hidden": True}

    hidden = (await client.get("/api/v1/activity/hidden")).json()["data"]
    assert [(entry["contact_id"], entry["name"]) for entry in hidden] == [(ann_id, "Ann Lee")]
    feed = (await client.get("/api/v1/activity")).json()["data"]
    assert [item["contact"]["id"] for item in feed["activities"]] == [bo_id]

    unhide = await client.delete(f"/api/v1/activity/hidden/{ann_id}")
    assert unhide.json()["data"] == {"hidden": False}
    assert (await client.get("/api/v1/activity/hidden")).json()["data"] == []

    missing = await client.put("/api/v1/activity/hidden/9999")
    assert missing.status_code == 404

    too_small = await client.get("/api/v1/activity", params={"limit": 0})
    assert too_small.status_code == 422


@pytest.mark.anyio("asyncio")
async def test_tag_listing_and_orphan_cleanup(client):
    ann_id = await _create(client, "Ann", ["Investor", "golf"])
    await _create(client, "Bo", ["investor", "Board"])

    tags = (await client.get("/api/v1/tags")).json()["data"]
    assert [tag["name"] for tag in tags] == ["Board", "Investor", "golf"]

    filtered = (await client.get("/api/v1/tags", params={"search": "INV"})).json()["data"]
    assert [tag["name"] for tag in filtered] == ["Investor"]

    await client.put(f"/api/v1/contacts/{ann_id}", json={"tags": ["Investor"]})
    cleanup = await client.delete("/api/v1/tags/orphans")
    assert cleanup.json()["data"] == {"removed": 1}

    tags = (await client.get("/api/v1/tags")).json()["data"]
    assert [tag["name"] for tag in tags] == ["Board", "Investor"]

    other_owner = await client.get("/api/v1/tags", headers={"X-Owner-Id": "someone-else"})
    assert other_owner.json()["data"] == []
