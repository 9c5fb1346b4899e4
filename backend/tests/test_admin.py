import uuid

import pytest

from scoutquest.config import settings
from scoutquest.models.scout import ScoutAccount
from scoutquest.security import make_access_token

def _hdrs(actor_id, role):
    return {"Authorization": f"Bearer {make_access_token(str(actor_id), role)}"}

OPS = {"X-Operator-Token": settings.operator_token}


@pytest.mark.asyncio
async def test_dangling_award_reconciled_by_operator(client, seed, session_factory, group_id):
    scout = await seed.scout(group_id, "Noa")
    parent = uuid.uuid4()
    await seed.parent_link(parent, scout)
    ch_id = await seed.challenge(uuid.uuid4(), points=60)
    sh, ph = _hdrs(scout, "scout"), _hdrs(parent, "parent")

    sub = (await client.post(f"/challenges/{ch_id}/start", headers=sh)).json()
    await client.post(f"/submissions/{sub['id']}/submit", headers=sh, json={"proof_ref": "proofs/fire.jpg"})

    async with session_factory() as s:
        await s.delete(await s.get(ScoutAccount, scout))
        await s.commit()

    r = await client.post(f"/submissions/{sub['id']}/accept", headers=ph)
    assert r.status_code == 500
    assert r.json()["error"] == "DanglingReference"

    # COMPLETED stuck even though the award did not
    r = await client.get(f"/submissions/{sub['id']}", headers=sh)
    assert r.json()["status"] == "completed"
    assert r.json()["awarded"] is False

    r = await client.get("/admin/reconciliation", headers=OPS)
    assert r.status_code == 200
    assert [item["submission_id"] for item in r.json()] == [sub["id"]]

    await seed.badge("Trailblazer", "points", 50)
    # Account comes back; operator retries
    async with session_factory() as s:
        s.add(ScoutAccount(id=scout, group_id=group_id, display_name="Noa", point_total=0))
        await s.commit()

    r = await client.post(f"/admin/submissions/{sub['id']}/award", headers=OPS)
    assert r.status_code == 200
    assert r.json() == {"submission_id": sub["id"], "status": "awarded", "point_total": 60}
    r = await client.get(f"/scouts/{scout}/badges", headers=sh)
    assert [(b["badge"]["name"], b["unlocked"]) for b in r.json()] == [("Trailblazer", True)]

    r = await client.post(f"/admin/submissions/{sub['id']}/award", headers=OPS)
    assert r.json()["status"] == "already_awarded"

    r = await client.get("/admin/reconciliation", headers=OPS)
    assert r.json() == []


@pytest.mark.asyncio
async def test_operator_token_required(client, monkeypatch):
    r = await client.get("/admin/reconciliation")
    assert r.status_code == 403
    r = await client.get("/admin/reconciliation", headers={"X-Operator-Token": "wrong"})
    assert r.status_code == 403

    monkeypatch.setattr(settings, "operator_token", "")
    r = await client.get("/admin/reconciliation", headers={"X-Operator-Token": ""})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_award_refused_for_unfinished_submission(client, seed, group_id):
    scout = await seed.scout(group_id)
    ch_id = await seed.challenge(uuid.uuid4())
    sub = (await client.post(f"/challenges/{ch_id}/start", headers=_hdrs(scout, "scout"))).json()
    r = await client.post(f"/admin/submissions/{sub['id']}/award", headers=OPS)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_badge_catalog_administration(client):
    r = await client.post("/admin/badges", json={"name": "Chef", "icon": "🍳", "category": "cuisine", "condition_type": "manual"})
    assert r.status_code == 403

    r = await client.post("/admin/badges", headers=OPS, json={
        "name": "Chef", "icon": "🍳", "category": "cuisine",
        "condition_type": "challenges_category", "condition_value": 3, "challenge_category": "cuisine",
    })
    assert r.status_code == 201, r.text
    chef = r.json()
    assert chef["is_active"] is True

    r = await client.post("/admin/badges", headers=OPS, json={
        "name": "Odd", "icon": "?", "category": "astronomy", "condition_type": "points", "condition_value": 5,
    })
    assert r.status_code == 422
    assert r.json()["error"] == "InvalidArgument"

    hh = _hdrs(uuid.uuid4(), "parent")
    r = await client.get("/badges", headers=hh)
    assert [b["id"] for b in r.json()] == [chef["id"]]

    r = await client.delete(f"/admin/badges/{chef['id']}", headers=OPS)
    assert r.json()["is_active"] is False
    assert (await client.get("/badges", headers=hh)).json() == []
    r = await client.get("/admin/badges", headers=OPS)
    assert [b["id"] for b in r.json()] == [chef["id"]]

    r = await client.post(f"/admin/badges/{chef['id']}/reactivate", headers=OPS)
    assert r.json()["is_active"] is True
    r = await client.delete(f"/admin/badges/{uuid.uuid4()}", headers=OPS)
    assert r.status_code == 404
