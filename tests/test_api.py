import asyncio

import pytest

from conftest import auth_headers, seed_profile
from helpdesk import main
from helpdesk.services.provisioning import register_user


async def _seed(factory, *people):
    async with factory() as session:
        return [await seed_profile(session, name, role) for name, role in people]


def test_protected_views_require_a_session(run_api) -> None:
    async def scenario(client, factory):
        response = await client.get("/dashboard")
        return response.status_code, response.json()

    status, body = run_api(scenario)
    assert status == 401
    assert body["redirect"] == "/auth/login"


@pytest.mark.parametrize(
    ("path", "role"),
    [
        ("/admin/reports", "user"),
        ("/admin/tickets", "user"),
        ("/admin/users", "user"),
        ("/admin/users", "agent"),
    ],
)
def test_gated_views_redirect_without_data(run_api, path, role) -> None:
    async def scenario(client, factory):
        (caller,) = await _seed(factory, ("Caller", role))
        response = await client.get(path, headers=auth_headers(caller))
        return response.status_code, response.json()

    status, body = run_api(scenario)
    assert status == 403
    assert body == {
        "error": "You do not have permission to access this page",
        "redirect": "/dashboard",
    }


def test_ticket_flow_through_the_api(run_api) -> None:
    async def scenario(client, factory):
        ana, bruno, carla = await _seed(
            factory, ("Ana", "user"), ("Bruno", "agent"), ("Carla", "admin")
        )
        created = await client.post(
            "/tickets",
            json={
                "title": "Laptop screen flickers",
                "description": "Started after the last driver update.",
                "priority": "high",
                "department": "TI",
            },
            headers=auth_headers(ana),
        )
        assert created.status_code == 201
        ticket = created.json()
        assert (ticket["status"], ticket["assigned_to"]) == ("open", None)

        status_update = await client.put(
            f"/admin/tickets/{ticket['id']}/status",
            json={"status": "in_progress"},
            headers=auth_headers(bruno),
        )
        assert status_update.status_code == 200
        body = status_update.json()
        assert body["ticket"]["status"] == "in_progress"
        assert body["comments"][-1]["content"] == "Status changed to in_progress by bruno@example.com"

        assignment = await client.put(
            f"/admin/tickets/{ticket['id']}/assignee",
            json={"assigned_to": carla.id},
            headers=auth_headers(bruno),
        )
        assert assignment.status_code == 200
        body = assignment.json()
        assert body["ticket"]["assignee"]["full_name"] == "Carla"
        assert len(body["comments"]) == 2

        comment = await client.post(
            f"/tickets/{ticket['id']}/comments",
            json={"content": "Thanks!", "is_internal": True},
            headers=auth_headers(ana),
        )
        assert comment.status_code == 201
        assert comment.json()["is_internal"] is False
        assert comment.json()["author"]["full_name"] == "Ana"

        detail = await client.get(f"/tickets/{ticket['id']}", headers=auth_headers(ana))
        assert detail.json()["requester"]["full_name"] == "Ana"
        assert detail.json()["assignee"]["id"] == carla.id

        feed = await client.get(f"/tickets/{ticket['id']}/comments", headers=auth_headers(ana))
        return [item["content"] for item in feed.json()]

    assert run_api(scenario) == ["Thanks!"]


def test_other_requesters_cannot_open_a_ticket(run_api) -> None:
    async def scenario(client, factory):
        ana, davi = await _seed(factory, ("Ana", "user"), ("Davi", "user"))
        created = await client.post(
            "/tickets",
            json={
                "title": "Need a new mouse",
                "description": "The scroll wheel is broken.",
                "priority": "low",
                "department": "TI",
            },
            headers=auth_headers(ana),
        )
        response = await client.get(f"/tickets/{created.json()['id']}", headers=auth_headers(davi))
        missing = await client.get("/tickets/9999", headers=auth_headers(davi))
        return response.status_code, response.json()["redirect"], missing.status_code, missing.json()

    status, redirect, missing_status, missing_body = run_api(scenario)
    assert (status, redirect) == (403, "/dashboard/tickets")
    assert missing_status == 404
    assert missing_body == {"error": "Ticket not found", "redirect": "/dashboard/tickets"}


def test_ticket_validation_and_blank_comments(run_api) -> None:
    async def scenario(client, factory):
        (ana,) = await _seed(factory, ("Ana", "user"))
        short = await client.post(
            "/tickets",
            json={"title": "Hi", "description": "short", "priority": "now", "department": ""},
            headers=auth_headers(ana),
        )
        created = await client.post(
            "/tickets",
            json={
                "title": "Expense report",
                "description": "Reimbursement not received.",
                "priority": "medium",
                "department": "Financeiro",
            },
            headers=auth_headers(ana),
        )
        blank = await client.post(
            f"/tickets/{created.json()['id']}/comments",
            json={"content": "   "},
            headers=auth_headers(ana),
        )
        return short.status_code, blank.status_code

    assert run_api(scenario) == (422, 422)


def test_setup_flow_through_the_api(run_api) -> None:
    async def scenario(client, factory):
        before = (await client.get("/setup")).json()
        created = await client.post(
            "/setup",
            json={
                "full_name": "First Admin",
                "email": "root@example.com",
                "password": "secret123",
                "confirm_password": "secret123",
            },
        )
        after = (await client.get("/setup")).json()
        again = await client.post(
            "/setup",
            json={"full_name": "Late Admin", "email": "late@example.com", "password": "secret123"},
        )
        return before, created.status_code, created.json()["role"], after, again.status_code

    assert run_api(scenario) == ({"available": True}, 201, "admin", {"available": False}, 409)


def test_login_me_and_navigation(run_api) -> None:
    async def scenario(client, factory):
        async with factory() as session:
            await register_user(
                session,
                full_name="Bruno Agent",
                email="bruno@example.com",
                password="secret123",
                role="agent",
            )
        bad = await client.post(
            "/auth/login", json={"email": "bruno@example.com", "password": "nope"}
        )
        good = await client.post(
            "/auth/login", json={"email": "Bruno@Example.com", "password": "secret123"}
        )
        tokens = good.json()
        headers = {"Authorization": f"Bearer {tokens['access_token']}"}
        me = (await client.get("/auth/me", headers=headers)).json()
        nav = (await client.get("/auth/navigation", headers=headers)).json()
        refreshed = await client.post(
            "/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        reused = await client.post(
            "/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        return bad.status_code, me["role"], nav, refreshed.status_code, reused.status_code

    bad, role, nav, refreshed, reused = run_api(scenario)
    assert bad == 401
    assert role == "agent"
    assert nav["role"] == "agent"
    assert {"href": "/dashboard/admin/reports", "title": "Reports"} in nav["items"]
    assert refreshed == 200
    assert reused == 401


def test_admin_registers_users_and_changes_roles(run_api) -> None:
    async def scenario(client, factory):
        (admin,) = await _seed(factory, ("Carla", "admin"))
        headers = auth_headers(admin)
        registered = await client.post(
            "/admin/users",
            json={
                "full_name": "Felipe Costa",
                "email": "felipe@example.com",
                "password": "secret123",
                "confirm_password": "secret123",
                "role": "user",
                "department": "RH",
            },
            headers=headers,
        )
        duplicate = await client.post(
            "/admin/users",
            json={"full_name": "Felipe Again", "email": "felipe@example.com", "password": "secret123"},
            headers=headers,
        )
        profile_id = registered.json()["id"]
        promoted = await client.put(
            f"/admin/users/{profile_id}/role", json={"role": "agent"}, headers=headers
        )
        staff = (await client.get("/admin/users/staff", headers=headers)).json()
        listing = (
            await client.get("/admin/users", params={"filter": '{"role": "agent"}'}, headers=headers)
        ).json()
        return (
            registered.status_code,
            duplicate.status_code,
            promoted.json()["role"],
            sorted(p["full_name"] for p in staff),
            listing["total"],
        )

    assert run_api(scenario) == (201, 409, "agent", ["Carla", "Felipe Costa"], 1)


def test_reports_and_dashboard(run_api) -> None:
    async def scenario(client, factory):
        ana, bruno = await _seed(factory, ("Ana", "user"), ("Bruno", "agent"))
        for department in ("TI", "RH", "TI"):
            await client.post(
                "/tickets",
                json={
                    "title": f"{department} request",
                    "description": "Something needs attention.",
                    "priority": "medium",
                    "department": department,
                },
                headers=auth_headers(ana),
            )
        report = (await client.get("/admin/reports", headers=auth_headers(bruno))).json()
        export = await client.get("/admin/reports/export", headers=auth_headers(bruno))
        own = (await client.get("/dashboard", headers=auth_headers(ana))).json()
        staff = (await client.get("/dashboard", headers=auth_headers(bruno))).json()
        return report, export, own, staff

    report, export, own, staff = run_api(scenario)
    assert report["totals"]["total"] == 3
    assert report["by_department"] == [{"name": "RH", "value": 1}, {"name": "TI", "value": 2}]
    assert len(report["by_day"]) == 7
    assert report["by_day"][-1]["tickets"] == 3
    assert report["avg_resolution_hours"] is None
    assert export.headers["content-type"].startswith("text/csv")
    assert "department,TI,2" in export.text
    assert own["stats"] == {"total": 3, "open": 3, "in_progress": 0, "resolved": 0}
    assert own["status_chart"] == [{"name": "open", "value": 3}]
    assert len(own["recent"]) == 3
    assert staff["stats"]["total"] == 3
    assert staff["status_chart"] == []


def test_profile_update(run_api) -> None:
    async def scenario(client, factory):
        (ana,) = await _seed(factory, ("Ana Souza", "user"))
        headers = auth_headers(ana)
        bad = await client.patch("/profile", json={"avatar_url": "ftp://x"}, headers=headers)
        good = await client.patch(
            "/profile",
            json={"full_name": "Ana P. Souza", "avatar_url": "https://cdn.example.com/ana.png"},
            headers=headers,
        )
        return bad.status_code, good.json()["full_name"], good.json()["avatar_url"]

    assert run_api(scenario) == (422, "Ana P. Souza", "https://cdn.example.com/ana.png")


@pytest.mark.parametrize(
    ("path", "raw_filter"),
    [
        ("/admin/tickets", '{"assigned_to": "abc"}'),
        ("/admin/tickets", '{"user_id": "x"}'),
        ("/admin/tickets", '{"search": 5}'),
        ("/admin/tickets", '{"status": "archived"}'),
        ("/admin/tickets", "[1, 2]"),
        ("/admin/tickets", "{not json"),
        ("/admin/users", '{"role": "owner"}'),
        ("/admin/users", '{"search": ["ana"]}'),
    ],
)
def test_malformed_list_filters_are_rejected(run_api, path, raw_filter) -> None:
    async def scenario(client, factory):
        (admin,) = await _seed(factory, ("Carla", "admin"))
        response = await client.get(
            path, params={"filter": raw_filter}, headers=auth_headers(admin)
        )
        return response.status_code

    assert run_api(scenario) == 400


def test_admin_ticket_filters_select_unassigned_and_by_requester(run_api) -> None:
    async def scenario(client, factory):
        ana, davi, bruno = await _seed(
            factory, ("Ana", "user"), ("Davi", "user"), ("Bruno", "agent")
        )
        ids = []
        for requester in (ana, davi):
            created = await client.post(
                "/tickets",
                json={
                    "title": "Printer jammed again",
                    "description": "Paper stuck in tray two.",
                    "priority": "low",
                    "department": "TI",
                },
                headers=auth_headers(requester),
            )
            ids.append(created.json()["id"])
        await client.put(
            f"/admin/tickets/{ids[0]}/assignee",
            json={"assigned_to": bruno.id},
            headers=auth_headers(bruno),
        )

        async def listed(raw_filter):
            response = await client.get(
                "/admin/tickets", params={"filter": raw_filter}, headers=auth_headers(bruno)
            )
            return [item["id"] for item in response.json()["data"]]

        return (
            ids,
            await listed('{"assigned_to": null}'),
            await listed(f'{{"assigned_to": "{bruno.id}"}}'),
            await listed(f'{{"user_id": {davi.id}, "search": "tray"}}'),
        )

    ids, unassigned, mine, davis = run_api(scenario)
    assert unassigned == [ids[1]]
    assert mine == [ids[0]]
    assert davis == [ids[1]]


def test_shutdown_disposes_the_engine(monkeypatch) -> None:
    disposed = []

    class RecordingEngine:
        async def dispose(self) -> None:
            disposed.append(True)

    monkeypatch.setattr(main, "engine", RecordingEngine())
    asyncio.run(main.on_shutdown())
    assert disposed == [True]
