"""
Tests for the bundle endpoints (src/api/routers/bundles.py).

Covers:
- GET /api/v1/bundle lists active bundles
- POST: scenario A (201 inline), scenario B (202 then 201 on re-poll),
  scenario D (stored 403 replayed), validation before enqueue
- DELETE: 204, 404 pre-check, removeAll query parameter, replay after removal
  (also with a wrong x-initial-request hint)
- 401 for missing/invalid credentials (nothing enqueued)
"""

from fastapi import status

from src.domain.bundles import Bundle

URL = "/api/v1/bundle"


# ============================================================================
# AUTHENTICATION
# ============================================================================


def test_missing_token_returns_401(client, api_context):
    """
    Test requests without a bearer token.

    Verifies:
    - 401 with the common error shape and WWW-Authenticate
    - Nothing enqueued
    """
    response = client.post(URL, json={"bundleId": "test"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["error"] == "unauthorized"
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.headers["x-request-id"]
    assert api_context.queue.messages == []


def test_invalid_token_returns_401(client):
    response = client.get(URL, headers={"Authorization": "Bearer wrong"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["message"] == "Invalid token"


# ============================================================================
# GET /bundle
# ============================================================================


def test_list_bundles(client, api_context, auth_headers):
    owner = api_context.owner_id
    api_context.bundles.add_bundle(owner, Bundle(bundle_id="test", expiry="2999-01-01"))
    api_context.bundles.add_bundle(owner, Bundle(bundle_id="old", expiry="2000-01-01"))

    response = client.get(URL, headers=auth_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"bundles": [{"bundleId": "test", "expiry": "2999-01-01"}]}


# ============================================================================
# POST /bundle
# ============================================================================


def test_grant_completes_within_budget(client, api_context, auth_headers):
    """
    Test scenario A: worker finishes inside x-wait-time-ms.

    Verifies:
    - 201 with the stored body
    - x-request-id echoed
    - Bundle stored for the owner
    """
    api_context.run_worker_inline()

    response = client.post(
        URL,
        json={"bundleId": "test"},
        headers={**auth_headers, "x-request-id": "req-a", "x-wait-time-ms": "5000"},
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert response.headers["x-request-id"] == "req-a"
    body = response.json()
    assert body["status"] == "granted"
    assert body["bundle"] == "test"
    assert api_context.bundles.get_bundle(api_context.owner_id, "test") is not None


def test_grant_deferred_then_polled(client, api_context, auth_headers):
    """
    Test scenario B: budget exhausted, client re-polls.

    Verifies:
    - First answer 202 with Location, Retry-After and x-request-id
    - Re-poll with the same id after the worker ran returns 201
    - Exactly one message enqueued
    """
    first = client.post(
        URL,
        json={"bundleId": "test"},
        headers={**auth_headers, "x-wait-time-ms": "0"},
    )

    assert first.status_code == status.HTTP_202_ACCEPTED
    request_id = first.headers["x-request-id"]
    assert first.headers["Location"] == URL
    assert first.headers["Retry-After"] == "5"
    assert first.json()["requestId"] == request_id

    api_context.worker.handle(api_context.queue.messages[0])
    second = client.post(
        URL, json={"bundleId": "test"}, headers={**auth_headers, "x-request-id": request_id}
    )

    assert second.status_code == status.HTTP_201_CREATED
    assert second.json()["status"] == "granted"
    assert len(api_context.queue.messages) == 1


def test_cap_failure_is_replayed(client, api_context, auth_headers):
    """Test scenario D: a stored 403 cap_reached is replayed on every re-poll."""
    for bundle_id in ("a", "b", "c", "d", "e", "f", "g", "h", "i", "j"):
        api_context.bundles.add_bundle(api_context.owner_id, Bundle(bundle_id=bundle_id))
    api_context.run_worker_inline()
    headers = {**auth_headers, "x-request-id": "req-cap", "x-wait-time-ms": "1000"}

    first = client.post(URL, json={"bundleId": "test"}, headers=headers)
    second = client.post(URL, json={"bundleId": "test"}, headers=headers)

    assert first.status_code == second.status_code == status.HTTP_403_FORBIDDEN
    assert first.json() == second.json() == {
        "error": "cap_reached",
        "message": "Bundle entitlement cap reached",
    }
    assert len(api_context.queue.messages) == 1


def test_grant_without_bundle_id_returns_400(client, api_context, auth_headers):
    response = client.post(URL, json={}, headers=auth_headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "invalid_request"
    assert response.json()["errors"] == ["Missing bundleId parameter from body"]
    assert api_context.queue.messages == []


def test_grant_with_invalid_json_returns_400(client, auth_headers):
    response = client.post(
        URL,
        content=b"{not json",
        headers={**auth_headers, "Content-Type": "application/json"},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["errors"] == ["Request body must be valid JSON"]


def test_grant_unknown_bundle_returns_404(client, api_context, auth_headers):
    response = client.post(URL, json={"bundleId": "platinum"}, headers=auth_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "bundle_not_found"
    assert api_context.queue.messages == []


def test_grant_qualifier_mismatch_returns_400(client, api_context, auth_headers):
    response = client.post(URL, json={"bundleId": "business"}, headers=auth_headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "qualifier_mismatch"
    assert api_context.queue.messages == []


def test_grant_qualifier_from_token_claims(client, api_context, auth_headers):
    api_context.authenticator.claims["subscriptionTier"] = "pro"
    api_context.run_worker_inline()

    response = client.post(
        URL,
        json={"bundleId": "business"},
        headers={**auth_headers, "x-wait-time-ms": "1000"},
    )

    assert response.status_code == status.HTTP_201_CREATED


def test_malformed_wait_header_returns_400(client, api_context, auth_headers):
    response = client.post(
        URL, json={"bundleId": "test"}, headers={**auth_headers, "x-wait-time-ms": "soon"}
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert api_context.queue.messages == []


# ============================================================================
# DELETE /bundle
# ============================================================================


def test_remove_held_bundle_returns_204(client, api_context, auth_headers):
    api_context.bundles.add_bundle(api_context.owner_id, Bundle(bundle_id="test"))
    api_context.run_worker_inline()

    response = client.request(
        "DELETE",
        URL,
        json={"bundleId": "test"},
        headers={**auth_headers, "x-request-id": "req-del", "x-wait-time-ms": "1000"},
    )

    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert response.content == b""
    assert response.headers["x-request-id"] == "req-del"
    assert api_context.bundles.list_bundles(api_context.owner_id) == []


def test_remove_not_held_bundle_returns_404(client, api_context, auth_headers):
    """Test the synchronous ownership pre-check (no record, no message)."""
    response = client.delete(f"{URL}?bundleId=test", headers=auth_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "bundle_not_found"
    assert api_context.queue.messages == []


def test_remove_repoll_after_removal_replays_204(client, api_context, auth_headers):
    """Test a re-poll after the bundle is gone replays 204 instead of 404."""
    api_context.bundles.add_bundle(api_context.owner_id, Bundle(bundle_id="test"))
    headers = {**auth_headers, "x-request-id": "req-r", "x-wait-time-ms": "0"}

    first = client.delete(f"{URL}?bundleId=test", headers=headers)
    api_context.worker.handle(api_context.queue.messages[0])
    second = client.delete(f"{URL}?bundleId=test", headers=headers)

    assert first.status_code == status.HTTP_202_ACCEPTED
    assert second.status_code == status.HTTP_204_NO_CONTENT


def test_remove_repoll_with_initial_request_hint_replays_204(
    client, api_context, auth_headers
):
    """
    Test x-initial-request: true sent again on a completed removal.

    Verifies:
    - The wrong hint does not turn the stored 204 into a 404
    - Only one message was ever enqueued
    """
    api_context.bundles.add_bundle(api_context.owner_id, Bundle(bundle_id="test"))
    headers = {
        **auth_headers,
        "x-request-id": "req-h",
        "x-initial-request": "true",
        "x-wait-time-ms": "0",
    }

    first = client.delete(f"{URL}?bundleId=test", headers=headers)
    api_context.worker.handle(api_context.queue.messages[0])
    second = client.delete(f"{URL}?bundleId=test", headers=headers)

    assert first.status_code == status.HTTP_202_ACCEPTED
    assert second.status_code == status.HTTP_204_NO_CONTENT
    assert len(api_context.queue.messages) == 1


def test_remove_all_via_query_parameter(client, api_context, auth_headers):
    api_context.bundles.add_bundle(api_context.owner_id, Bundle(bundle_id="test"))
    api_context.bundles.add_bundle(api_context.owner_id, Bundle(bundle_id="guest"))
    api_context.run_worker_inline()

    response = client.delete(
        f"{URL}?removeAll=true", headers={**auth_headers, "x-wait-time-ms": "1000"}
    )

    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert api_context.bundles.list_bundles(api_context.owner_id) == []


def test_remove_without_target_returns_400(client, api_context, auth_headers):
    response = client.delete(URL, headers=auth_headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert api_context.queue.messages == []
