"""HTTP surface: role gating, envelopes, and the onboarding flow end to end."""

from datetime import datetime, timedelta, timezone
from importlib.metadata import requires

from sqlalchemy import update

from conftest import auth_headers, mint_session_token
from firm_portal.domain.token import OnboardingToken

FIRM_EMAIL = "ops@acme.test"


async def _create_firm(client, admin_headers, email=FIRM_EMAIL, name="Acme LLP"):
    resp = await client.post(
        "/api/v1/firms",
        json={"name": name, "email": email, "contactPerson": "Jo Park"},
        headers=admin_headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _issue(client, admin_headers, firm_id, force=False):
    params = {"force": "true"} if force else None
    return await client.post(f"/api/v1/firms/{firm_id}/tokens", params=params, headers=admin_headers)


# =============================================================================
# Health / auth gating
# =============================================================================

async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_postgres_driver_is_declared():
    declared = requires("firm-portal-api") or []
    assert any(req.startswith("asyncpg") and "extra == \"postgres\"" in req for req in declared)


async def test_admin_routes_require_session(client):
    resp = await client.get("/api/v1/firms")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"


async def test_bad_session_token_is_unauthorized(client):
    resp = await client.get("/api/v1/firms", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401

    expired = mint_session_token("admin@firm-portal.test", expires_in=-60)
    resp = await client.get("/api/v1/firms", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401


async def test_non_admin_is_forbidden(client):
    resp = await client.get("/api/v1/firms", headers=auth_headers("ops@acme.test"))
    assert resp.status_code == 403
    assert resp.json()["error"] == {"code": "FORBIDDEN", "message": "Admin access required"}


# =============================================================================
# Firms
# =============================================================================

async def test_create_and_list_firms(client, admin_headers):
    firm = await _create_firm(client, admin_headers)
    assert firm["email"] == FIRM_EMAIL
    assert firm["hasCompletedOnboarding"] is False
    assert firm["contactPerson"] == "Jo Park"

    resp = await client.get("/api/v1/firms", headers=admin_headers)
    body = resp.json()
    assert body["meta"]["total"] == 1
    assert body["data"][0]["id"] == firm["id"]


async def test_sort_on_non_column_attribute_falls_back(client, admin_headers):
    older = await _create_firm(client, admin_headers, email="old@acme.test", name="Older")
    newer = await _create_firm(client, admin_headers, email="new@acme.test", name="Newer")

    for sort in ("snapshot", "tokens", "metadata", "registry"):
        resp = await client.get("/api/v1/firms", params={"sort": sort}, headers=admin_headers)
        assert resp.status_code == 200, resp.text
        assert [f["id"] for f in resp.json()["data"]] == [newer["id"], older["id"]]

    resp = await client.get("/api/v1/firms", params={"sort": "name", "order": "asc"}, headers=admin_headers)
    assert [f["name"] for f in resp.json()["data"]] == ["Newer", "Older"]

    for sort in ("metadata", "snapshot", "extra"):
        resp = await client.get("/api/v1/audit-logs", params={"sort": sort}, headers=admin_headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["meta"]["total"] == 2


async def test_duplicate_firm_email(client, admin_headers):
    await _create_firm(client, admin_headers)
    resp = await client.post(
        "/api/v1/firms", json={"name": "Other", "email": FIRM_EMAIL}, headers=admin_headers
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["message"] == "A firm with this email already exists"


async def test_update_firm(client, admin_headers):
    firm = await _create_firm(client, admin_headers)
    resp = await client.patch(
        f"/api/v1/firms/{firm['id']}", json={"name": "Acme Partners"}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Acme Partners"

    resp = await client.get(
        "/api/v1/audit-logs",
        params={"entityId": firm["id"], "action": "firm_updated"},
        headers=admin_headers,
    )
    [entry] = resp.json()["data"]
    assert entry["oldValue"]["name"] == "Acme LLP"
    assert entry["newValue"]["name"] == "Acme Partners"
    assert entry["metadata"] == {"changedFields": ["name"]}


async def test_patch_null_clears_contact_but_not_name(client, admin_headers):
    firm = await _create_firm(client, admin_headers)

    resp = await client.patch(
        f"/api/v1/firms/{firm['id']}", json={"contactPerson": None}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["contactPerson"] is None

    for field in ("name", "email"):
        resp = await client.patch(
            f"/api/v1/firms/{firm['id']}", json={field: None}, headers=admin_headers
        )
        assert resp.status_code == 422

    resp = await client.get(f"/api/v1/firms/{firm['id']}", headers=admin_headers)
    data = resp.json()["data"]
    assert data["name"] == "Acme LLP"
    assert data["email"] == FIRM_EMAIL
    assert data["contactPerson"] is None


async def test_unknown_firm_is_404(client, admin_headers):
    resp = await client.get("/api/v1/firms/nope", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


# =============================================================================
# Tokens
# =============================================================================

async def test_issue_token_then_conflict_then_force(client, admin_headers):
    firm = await _create_firm(client, admin_headers)

    first = await _issue(client, admin_headers, firm["id"])
    assert first.status_code == 201
    data = first.json()["data"]
    assert len(data["token"]) == 32
    assert data["link"].endswith(f"/firm-signup?token={data['token']}")

    again = await _issue(client, admin_headers, firm["id"])
    assert again.status_code == 409
    assert again.json()["error"]["message"] == "This firm already has an active onboarding token"

    forced = await _issue(client, admin_headers, firm["id"], force=True)
    assert forced.status_code == 201
    assert forced.json()["data"]["invalidatedTokens"] == 1

    resp = await client.get(f"/api/v1/firms/{firm['id']}/tokens/active", headers=admin_headers)
    assert [t["id"] for t in resp.json()["data"]] == [forced.json()["data"]["tokenId"]]

    resp = await client.get("/api/v1/tokens", headers=admin_headers)
    assert len(resp.json()["data"]) == 2
    resp = await client.get("/api/v1/tokens", params={"unused": "true"}, headers=admin_headers)
    [unused] = resp.json()["data"]
    assert unused["firm"]["email"] == FIRM_EMAIL


# =============================================================================
# Onboarding
# =============================================================================

async def test_inspect_token(client, admin_headers):
    firm = await _create_firm(client, admin_headers)
    token = (await _issue(client, admin_headers, firm["id"])).json()["data"]["token"]

    resp = await client.get(f"/api/v1/onboarding/{token}")
    data = resp.json()["data"]
    assert resp.status_code == 200
    assert data["valid"] is True
    assert data["firm"] == {"id": firm["id"], "name": "Acme LLP", "email": FIRM_EMAIL}

    resp = await client.get("/api/v1/onboarding/nonexistent")
    assert resp.status_code == 200
    assert resp.json()["data"]["valid"] is False
    assert resp.json()["data"]["error"] == "Token not found"


async def test_password_policy(client, admin_headers):
    firm = await _create_firm(client, admin_headers)
    token = (await _issue(client, admin_headers, firm["id"])).json()["data"]["token"]

    for password, confirm in [("short1A", "short1A"), ("alllowercase1", "alllowercase1"), ("Sup3rSecret", "Sup3rSecreT")]:
        resp = await client.post(
            f"/api/v1/onboarding/{token}/password",
            json={"password": password, "confirmPassword": confirm},
        )
        assert resp.status_code == 422


async def test_onboarding_end_to_end(client, admin_headers, identity):
    firm = await _create_firm(client, admin_headers)
    token = (await _issue(client, admin_headers, firm["id"])).json()["data"]["token"]
    firm_headers = auth_headers(FIRM_EMAIL, sub="user_1")

    resp = await client.get("/api/v1/access/me", headers=firm_headers)
    assert resp.json()["data"]["role"] == "unrecognized"
    assert (await client.get("/api/v1/firm/me", headers=firm_headers)).status_code == 403

    resp = await client.post(
        f"/api/v1/onboarding/{token}/password",
        json={"password": "Sup3rSecret", "confirmPassword": "Sup3rSecret"},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "complete"
    assert identity.created == [FIRM_EMAIL]

    resp = await client.get("/api/v1/access/me", headers=firm_headers)
    assert resp.json()["data"] == {
        "email": FIRM_EMAIL,
        "role": "firm",
        "redirectTo": "/firm/dashboard",
    }
    resp = await client.get("/api/v1/firm/me", headers=firm_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["identityRef"] == "user_1"

    resp = await client.get(f"/api/v1/onboarding/{token}")
    assert resp.json()["data"]["error"] == "Token has already been used"

    resp = await client.post(
        f"/api/v1/onboarding/{token}/password",
        json={"password": "Sup3rSecret", "confirmPassword": "Sup3rSecret"},
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "TOKEN_USED"


async def test_onboarding_with_verification_code(client, admin_headers, identity):
    identity.require_verification = True
    firm = await _create_firm(client, admin_headers)
    token = (await _issue(client, admin_headers, firm["id"])).json()["data"]["token"]

    resp = await client.post(
        f"/api/v1/onboarding/{token}/password",
        json={"password": "Sup3rSecret", "confirmPassword": "Sup3rSecret"},
    )
    data = resp.json()["data"]
    assert data["status"] == "needs_verification"
    attempt_id = data["attemptId"]

    resp = await client.post(f"/api/v1/onboarding/{token}/resend", json={"attemptId": attempt_id})
    assert resp.status_code == 200
    assert identity.codes_sent == [attempt_id, attempt_id]

    resp = await client.post(
        f"/api/v1/onboarding/{token}/verify", json={"attemptId": attempt_id, "code": "000000"}
    )
    assert resp.status_code == 428
    assert resp.json()["error"]["code"] == "UNVERIFIED"

    resp = await client.post(
        f"/api/v1/onboarding/{token}/verify",
        json={"attemptId": attempt_id, "code": identity.valid_code},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "complete"

    resp = await client.get(f"/api/v1/firms/{firm['id']}", headers=admin_headers)
    assert resp.json()["data"]["hasCompletedOnboarding"] is True


async def test_expired_token_is_gone(client, admin_headers, db_factory):
    firm = await _create_firm(client, admin_headers)
    token = (await _issue(client, admin_headers, firm["id"])).json()["data"]["token"]

    async with db_factory() as s:
        await s.execute(
            update(OnboardingToken)
            .where(OnboardingToken.token == token)
            .values(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        )
        await s.commit()

    resp = await client.get(f"/api/v1/onboarding/{token}")
    assert resp.json()["data"]["reason"] == "expired"

    resp = await client.post(
        f"/api/v1/onboarding/{token}/password",
        json={"password": "Sup3rSecret", "confirmPassword": "Sup3rSecret"},
    )
    assert resp.status_code == 410
    assert resp.json()["error"]["message"] == "Token has expired"


# =============================================================================
# Access / admin session
# =============================================================================

async def test_admin_access(client, admin_headers):
    resp = await client.get("/api/v1/access/me", headers=admin_headers)
    assert resp.json()["data"]["role"] == "admin"
    assert resp.json()["data"]["redirectTo"] == "/admin/dashboard"

    resp = await client.get("/api/v1/access/verify-admin", headers=admin_headers)
    assert resp.json()["data"] == {"isAdmin": True, "email": "admin@firm-portal.test"}

    resp = await client.get("/api/v1/access/verify-admin", headers=auth_headers("x@y.test"))
    assert resp.json()["data"]["isAdmin"] is False


async def test_admin_session_is_logged(client, admin_headers):
    resp = await client.post("/api/v1/access/admin-session", json={}, headers=admin_headers)
    assert resp.status_code == 204
    resp = await client.post("/api/v1/access/admin-session", json={}, headers=admin_headers)
    assert resp.status_code == 204

    resp = await client.get(
        "/api/v1/audit-logs", params={"action": "admin_login"}, headers=admin_headers
    )
    entries = resp.json()["data"]
    assert len(entries) == 3
    assert sum(1 for e in entries if e["metadata"]["firstLogin"]) == 1
    assert all(e["actorType"] == "admin" for e in entries)


async def test_admin_session_rejects_non_admin(client):
    resp = await client.post(
        "/api/v1/access/admin-session", json={}, headers=auth_headers("ops@acme.test")
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["message"] == "Access denied: Not an authorized admin email"


async def test_audit_log_requires_admin(client):
    resp = await client.get("/api/v1/audit-logs", headers=auth_headers("ops@acme.test"))
    assert resp.status_code == 403
