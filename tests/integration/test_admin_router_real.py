"""Integration tests for admin account and equipment maintenance."""

from __future__ import annotations

import pytest
from fastapi import FastAPI

from sampledb.core.sessions import SESSION_COOKIE_NAME


@pytest.mark.asyncio
async def test_non_admin_is_redirected_home(
    app_factory, client_factory, user_factory, login
) -> None:
    app: FastAPI = app_factory()
    await user_factory("alice")

    async with client_factory(app) as client:
        await login(client, "alice")
        response = await client.get("/admin/users")

    assert response.status_code == 303
    assert response.headers["location"] == "/"


@pytest.mark.asyncio
async def test_update_access_approves_and_sets_exact_grant_set(
    app_factory, client_factory, user_factory, equipment_factory, login
) -> None:
    app: FastAPI = app_factory()
    await user_factory("root", is_admin=True)
    pending = await user_factory("newbie", approved=False)
    confocal = await equipment_factory("Confocal")
    sem = await equipment_factory("SEM")

    async with client_factory(app) as admin, client_factory(app) as user:
        await login(admin, "root")
        assert (await login(user, "newbie")).status_code == 403

        response = await admin.put(
            f"/admin/users/{pending.id}/access",
            json={
                "approved": True,
                "group_name": "Imaging",
                "equipment_ids": [sem.id, confocal.id, 999_999],
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["is_approved"] is True
        assert body["group_name"] == "Imaging"
        assert body["equipment_ids"] == sorted([confocal.id, sem.id])

        narrowed = await admin.put(
            f"/admin/users/{pending.id}/access",
            json={"approved": True, "group_name": None, "equipment_ids": [sem.id]},
        )
        assert narrowed.json()["equipment_ids"] == [sem.id]

        assert (await login(user, "newbie")).status_code == 200
        permissions = (await user.get("/api/equipment/permissions")).json()
        assert permissions == {str(confocal.id): False, str(sem.id): True}

        listed = (await admin.get("/admin/users")).json()
        assert [row["username"] for row in listed] == ["newbie", "root"]


@pytest.mark.asyncio
async def test_admin_withdrawal_applies_to_existing_session(
    app_factory, client_factory, user_factory, login
) -> None:
    """De-escalation takes effect on the very next request of a live session."""
    app: FastAPI = app_factory()
    await user_factory("root", is_admin=True)
    deputy = await user_factory("deputy", is_admin=True)

    async with client_factory(app) as root, client_factory(app) as deputy_client:
        await login(root, "root")
        await login(deputy_client, "deputy")
        assert (await deputy_client.get("/admin/users")).status_code == 200

        demoted = await root.put(f"/admin/users/{deputy.id}/admin", json={"is_admin": False})
        assert demoted.status_code == 200
        assert demoted.json()["is_admin"] is False

        after = await deputy_client.get("/admin/users")
        assert after.status_code == 303
        assert after.headers["location"] == "/"
        assert (await deputy_client.get("/me")).json()["is_admin"] is False


@pytest.mark.asyncio
async def test_deleting_user_revokes_every_session_and_blocks_login(
    app_factory, client_factory, user_factory, login
) -> None:
    app: FastAPI = app_factory()
    await user_factory("root", is_admin=True)
    victim = await user_factory("mallory")

    async with (
        client_factory(app) as admin,
        client_factory(app) as laptop,
        client_factory(app) as phone,
    ):
        await login(admin, "root")
        await login(laptop, "mallory")
        await login(phone, "mallory")
        assert laptop.cookies.get(SESSION_COOKIE_NAME) != phone.cookies.get(SESSION_COOKIE_NAME)

        removed = await admin.delete(f"/admin/users/{victim.id}")
        assert removed.status_code == 204

        for client in (laptop, phone):
            response = await client.get("/me")
            assert response.status_code == 303
            assert response.headers["location"] == "/login"

        relogin = await login(laptop, "mallory")
        assert relogin.status_code == 403
        assert relogin.json()["code"] == "account_disabled"

        listed = (await admin.get("/admin/users")).json()
        assert "mallory" not in [row["username"] for row in listed]


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(app_factory, client_factory, user_factory, login) -> None:
    app: FastAPI = app_factory()
    root = await user_factory("root", is_admin=True)

    async with client_factory(app) as admin:
        await login(admin, "root")
        response = await admin.delete(f"/admin/users/{root.id}")
        still_in = await admin.get("/me")

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
    assert still_in.status_code == 200


@pytest.mark.asyncio
async def test_add_equipment_rejects_duplicates(
    app_factory, client_factory, user_factory, login
) -> None:
    app: FastAPI = app_factory()
    await user_factory("root", is_admin=True)

    async with client_factory(app) as admin:
        await login(admin, "root")
        created = await admin.post(
            "/admin/equipment", json={"name": "Cryostat", "location": "B2"}
        )
        duplicate = await admin.post("/admin/equipment", json={"name": "Cryostat"})
        blank = await admin.post("/admin/equipment", json={"name": "   "})

    assert created.status_code == 201
    assert created.json()["name"] == "Cryostat"
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "name_taken"
    assert blank.status_code == 400


@pytest.mark.asyncio
async def test_group_catalogue_add_list_and_delete_clears_labels(
    app_factory, client_factory, user_factory, equipment_factory, login
) -> None:
    app: FastAPI = app_factory()
    await user_factory("root", is_admin=True)
    member = await user_factory("alice")
    outsider = await user_factory("bob")
    confocal = await equipment_factory("Confocal")

    async with client_factory(app) as admin:
        await login(admin, "root")

        imaging = await admin.post("/admin/groups", json={"name": " Imaging "})
        assert imaging.status_code == 201
        assert imaging.json()["name"] == "Imaging"
        again = await admin.post("/admin/groups", json={"name": "Imaging"})
        assert again.json()["id"] == imaging.json()["id"]
        await admin.post("/admin/groups", json={"name": "Cryo"})
        blank = await admin.post("/admin/groups", json={"name": "  "})
        assert blank.status_code == 400

        listed = await admin.get("/admin/groups")
        assert [group["name"] for group in listed.json()] == ["Cryo", "Imaging"]

        for user_id, label in ((member.id, "Imaging"), (outsider.id, "Cryo")):
            await admin.put(
                f"/admin/users/{user_id}/access",
                json={"approved": True, "group_name": label, "equipment_ids": [confocal.id]},
            )

        overview = (await admin.get("/admin/overview")).json()
        assert [group["name"] for group in overview["groups"]] == ["Cryo", "Imaging"]
        assert [item["name"] for item in overview["equipment"]] == ["Confocal"]
        labels = {row["username"]: row["group_name"] for row in overview["users"]}
        assert labels == {"alice": "Imaging", "bob": "Cryo", "root": None}

        removed = await admin.delete(f"/admin/groups/{imaging.json()['id']}")
        assert removed.status_code == 204
        missing = await admin.delete(f"/admin/groups/{imaging.json()['id']}")
        assert missing.status_code == 404

        after = (await admin.get("/admin/overview")).json()
        assert [group["name"] for group in after["groups"]] == ["Cryo"]
        labels = {row["username"]: row["group_name"] for row in after["users"]}
        assert labels == {"alice": None, "bob": "Cryo", "root": None}
        assert {row["username"]: row["equipment_ids"] for row in after["users"]}["alice"] == [
            confocal.id
        ]


@pytest.mark.asyncio
async def test_group_routes_require_admin(
    app_factory, client_factory, user_factory, login
) -> None:
    app: FastAPI = app_factory()
    await user_factory("alice")

    async with client_factory(app) as client:
        await login(client, "alice")
        response = await client.post("/admin/groups", json={"name": "Imaging"})

    assert response.status_code == 303
    assert response.headers["location"] == "/"
