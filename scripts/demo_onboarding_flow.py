"""Demo: walk a new user through onboarding against the in-process app.

Run with:
    python scripts/demo_onboarding_flow.py
"""

from __future__ import annotations

import asyncio

import httpx

from orderdesk.api import dependencies
from orderdesk.flow.actions import OnboardingActions
from orderdesk.flow.controller import FlowController
from orderdesk.flow.guard import RouteGuard
from orderdesk.flow.http_client import OrderdeskClient
from orderdesk.flow.navigation import InMemoryNavigator
from orderdesk.flow.session import SessionStore
from orderdesk.main import app

BASE_URL = "http://demo"
BOSS_EMAIL = "boss@acme.test"
NEW_EMAIL = "ana@example.com"
PASSWORD = "demo-pass-123"


async def main() -> None:
    provider = dependencies.identity_provider
    transport = httpx.ASGITransport(app=app)

    # ── Seed: an admin with an organization ─────────────────────────
    boss_token = await provider.sign_up(BOSS_EMAIL, PASSWORD, "Boss")
    boss = await provider.verify_token(boss_token)
    async with OrderdeskClient(BASE_URL, lambda: boss_token, transport=transport) as boss_api:
        await boss_api.sync_user(boss)
        org = await boss_api.create_organization(boss, name="Acme Foods")
    print(f"0. seed: {BOSS_EMAIL} created {org.name!r} (slug={org.slug})")

    # ── The new user's client-side core ─────────────────────────────
    session = SessionStore(provider, sync=lambda identity: api.sync_user(identity))
    api = OrderdeskClient(BASE_URL, lambda: session.token, transport=transport)
    nav = InMemoryNavigator("/dashboard")
    controller = FlowController(session, api, nav)
    guard = RouteGuard(session, controller)
    actions = OnboardingActions(session, controller, api)

    await session.restore(None)
    print(f"1. signed out, /dashboard  → {guard.evaluate('/dashboard').outcome}")

    await session.sign_up(NEW_EMAIL, PASSWORD, "Ana")
    print(f"2. signed up, /dashboard   → {guard.evaluate('/dashboard').outcome}")
    state = await guard.settle()
    print(f"3. status settled          → step={state.step}  redirects={nav.history}")

    # ── The admin invites the new user ──────────────────────────────
    # Re-mint so the token carries the admin claims set at creation.
    boss_token = await provider.sign_in(BOSS_EMAIL, PASSWORD)
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as http:
        r = await http.post(
            "/api/organizations/invitations",
            json={"email": NEW_EMAIL, "role": "delivery"},
            headers={"Authorization": f"Bearer {boss_token}"},
        )
    invitation_id = r.json()["data"]["invitation"]["id"]
    print(f"4. invitation sent         → {r.status_code}  id={invitation_id}")

    nav.visit("/dashboard")
    state = await controller.refresh()
    print(f"5. status refreshed        → step={state.step}  redirects={nav.history}")
    controller.reset_redirection()
    await controller.refresh()
    print(f"6. redirect re-armed       → redirects={nav.history}")

    state = await actions.accept_invitation(invitation_id)
    joined = state.current_organization
    print(f"7. invitation accepted     → step={state.step}  org={joined.name if joined else None}")
    print(f"8. /dashboard              → {guard.evaluate('/dashboard').outcome}")

    await session.sign_out()
    print(f"9. signed out, /dashboard  → {guard.evaluate('/dashboard').outcome}")

    guard.close()
    controller.close()
    await api.aclose()
    print("\nAll steps completed.")


if __name__ == "__main__":
    asyncio.run(main())
