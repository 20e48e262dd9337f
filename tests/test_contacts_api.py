from __future__ import annotations

import pytest


ALICE = {
    "first_name": "Alice",
    "last_name": "Johnson",
    "company": "Acme Corp",
    "title": "Manager",
    "emails": [
        {"address": "alice@example.com", "label": "work"},
        {"address": "alice.j@home.example.com", "label": "home", "is_primary": True},
    ],
    "phones": [{"number": "+1-555-0101"}],
    "tags": ["vip", "Friends", "VIP"],
    "notes": "Met at conference",
}
BOB = {
    "first_name": "Bob",
    "last_name": "Smith",
    "company": "Beta LLC",
    "emails": [{"address": "bob@example.com"}],
    "tags": ["leads"],
}


async def _create(client, payload):
    response = await client.post("/api/v1/contacts", json=payload)
    assert response.status_code == 201
    return response.json()["data"]


@pytest.mark.anyio("asyncio")
async def test_contacts_crud_and_search(client):
    alice = await _create(client, ALICE)
    bob = await _create(client, BOB)

    assert alice["tags"] == ["vip", "Friends"]
    assert [email["is_primary"] for email in alice["emails"]] == [False, True]

    search_resp = await client.get("/api/v1/contacts", params={"search": "acme"})
    assert search_resp.status_code == 200
    page = search_resp.json()["data"]
    assert page["total"] == 1
    assert [item["id"] for item in page["contacts"]] == [alice["id"]]

    email_search = await client.get("/api/v1/contacts", params={"search": "bob@"})
    assert [item["id"] for item in email_search.json()["data"]["contacts"]] == [bob["id"]]

    sorted_resp = await client.get(
        "/api/v1/contacts", params={"sort_by": "first_name", "sort_order": "desc", "take": 1}
    )
    sorted_page = sorted_resp.json()["data"]
    assert sorted_page["total"] == 2
    assert [item["id"] for item in sorted_page["contacts"]] == [bob["id"]]

    update_resp = await client.put(
        f"/api/v1/contacts/{alice['id']}",
        json={"company": "Acme International", "tags": ["allies"]},
    )
    assert update_resp.status_code == 200
    assert update_resp.json()["data"]["company"] == "Acme International"
    assert update_resp.json()["data"]["tags"] == ["allies"]

    delete_resp = await client.delete(f"/api/v1/contacts/{bob['id']}")
    assert delete_resp.status_code == 200
    assert delete_resp.json()["data"] == {"deleted": True}

    missing_resp = await client.get(f"/api/v1/contacts/{bob['id']}")
    assert missing_resp.status_code == 404
    assert missing_resp.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    deleted_update = await client.put(f"/api/v1/contacts/{bob['id']}", json={"title": "CEO"})
    assert deleted_update.status_code == 409
    assert deleted_update.json()["error"]["code"] == "INVALID_STATE"


@pytest.mark.anyio("asyncio")
async def test_contacts_are_scoped_to_owner(client):
    alice = await _create(client, ALICE)

    other = {"X-Owner-Id": "someone-else"}
    assert (await client.get(f"/api/v1/contacts/{alice['id']}", headers=other)).status_code == 404
    listing = await client.get("/api/v1/contacts", headers=other)
    assert listing.json()["data"]["total"] == 0

    no_owner = await client.get("/api/v1/contacts", headers={"X-Owner-Id": ""})
    assert no_owner.status_code == 422


@pytest.mark.anyio("asyncio")
async def test_invalid_payloads_are_rejected(client):
    blank_name = await client.post(
        "/api/v1/contacts", json={"first_name": "  ", "last_name": "Lee"}
    )
    assert blank_name.status_code == 422
    assert blank_name.json()["error"]["code"] == "VALIDATION_ERROR"

    bad_email = await client.post(
        "/api/v1/contacts",
        json={"first_name": "Ann", "last_name": "Lee", "emails": [{"address": "nope"}]},
    )
    assert bad_email.status_code == 422


@pytest.mark.anyio("asyncio")
async def test_version_history_and_restore(client):
    alice = await _create(client, ALICE)
    contact_url = f"/api/v1/contacts/{alice['id']}"

    await client.put(contact_url, json={"company": "Beta"})

    versions = (await client.get(f"{contact_url}/versions")).json()["data"]
    assert [version["version"] for version in versions] == [2, 1]
    assert versions[0]["changes"] == {"company": {"from": "Acme Corp", "to": "Beta"}}

    first = await client.get(f"{contact_url}/versions/1")
    assert first.status_code == 200
    assert first.json()["data"]["snapshot"]["company"] == "Acme Corp"
    assert first.json()["data"]["changes"] == {}

    assert (await client.get(f"{contact_url}/versions/0")).status_code == 422
    assert (await client.get(f"{contact_url}/versions/9")).status_code == 404

    restore = await client.post(f"{contact_url}/restore/1")
    assert restore.status_code == 200
    assert restore.json()["data"]["company"] == "Acme Corp"
    versions = (await client.get(f"{contact_url}/versions")).json()["data"]
    assert [version["version"] for version in versions] == [3, 2, 1]


@pytest.mark.anyio("asyncio")
async def test_duplicates_and_merge(client):
    alice = await _create(client, ALICE)
    twin = await _create(
        client,
        {
            "first_name": "alice",
            "last_name": "johnson",
            "title": "Director",
            "emails": [{"address": "ALICE@example.com"}, {"address": "aj@work.example.com"}],
            "tags": ["golf"],
        },
    )

    duplicates = await client.get(f"/api/v1/contacts/{alice['id']}/duplicates")
    assert [item["id"] for item in duplicates.json()["data"]] == [twin["id"]]

    merge = await client.post(
        f"/api/v1/contacts/{alice['id']}/merge",
        json={"secondary_id": twin["id"], "field_resolution": {"title": "secondary"}},
    )
    assert merge.status_code == 200
    result = merge.json()["data"]
    assert result["merged_contact_id"] == alice["id"]
    assert result["deleted_contact_id"] == twin["id"]
    assert result["emails_merged"] == 1
    assert result["tags_merged"] == 1
    assert "title" in result["fields_from_secondary"]

    merged = (await client.get(f"/api/v1/contacts/{alice['id']}")).json()["data"]
    assert merged["title"] == "Director"
    assert len(merged["emails"]) == 3

    self_merge = await client.post(
        f"/api/v1/contacts/{alice['id']}/merge", json={"secondary_id": alice["id"]}
    )
    assert self_merge.status_code == 409

    bad_field = await client.post(
        f"/api/v1/contacts/{alice['id']}/merge",
        json={"secondary_id": twin["id"], "field_resolution": {"company": "merge"}},
    )
    assert bad_field.status_code == 422


@pytest.mark.anyio("asyncio")
async def test_lookup_by_email(client):
    alice = await _create(client, ALICE)

    found = await client.get("/api/v1/contacts/lookup", params={"email": "ALICE@example.com"})
    assert found.json()["data"]["id"] == alice["id"]

    missing = await client.get("/api/v1/contacts/lookup", params={"email": "zed@example.com"})
    assert missing.status_code == 200
    assert missing.json()["data"] is None


@pytest.mark.anyio("asyncio")
async def test_structured_notes_endpoint(client):
    contact = await _create(client, {"first_name": "Dana", "last_name": "Ray"})
    notes_url = f"/api/v1/contacts/{contact['id']}/notes"

    first = await client.post(
        notes_url,
        json={"section": "what_they_care_about", "field": "goals", "value": "Growth, Hiring"},
    )
    assert first.status_code == 200
    second = await client.post(
        notes_url,
        json={"section": "key_history", "value": "Intro call", "date": "2024-04-02"},
    )
    notes = second.json()["data"]["notes"]
    assert notes.splitlines() == [
        "## WHAT THEY CARE ABOUT",
        "- **Goals/KPIs:** Growth, Hiring",
        "## KEY HISTORY",
        "- 2024-04-02 - Intro call",
    ]

    unknown = await client.post(
        notes_url, json={"section": "current_status", "field": "mood", "value": "happy"}
    )
    assert unknown.status_code == 422

    versions = (await client.get(f"/api/v1/contacts/{contact['id']}/versions")).json()["data"]
    assert [version["version"] for version in versions] == [3, 2, 1]


@pytest.mark.anyio("asyncio")
async def test_search_treats_wildcards_literally(client):
    underscored = await _create(client, {"first_name": "Ann", "last_name": "Lee", "title": "a_b"})
    await _create(client, {"first_name": "Bo", "last_name": "Lee", "title": "axb"})
    await _create(client, {"first_name": "Cy", "last_name": "Lee", "title": "100 percent"})

    underscore_resp = await client.get("/api/v1/contacts", params={"search": "a_b"})
    assert [item["id"] for item in underscore_resp.json()["data"]["contacts"]] == [
        underscored["id"]
    ]

    percent_resp = await client.get("/api/v1/contacts", params={"search": "100%"})
    assert percent_resp.json()["data"]["total"] == 0
