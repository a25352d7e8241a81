# mypy: ignore-errors
# tests/v1/test_api_profiles.py
"""Tests for profile sharing endpoints."""

from fastapi import status

from commune.services.profiles import create_profile, get_primary_profile_id_for_user_in_community


def test_share_list_and_remove(
    client, db_session, make_user, owner, community, join, auth_headers
) -> None:
    profile = create_profile(db_session, owner.id, community.id, name="News", username="news")
    user = make_user()
    join(user, "alice")

    response = client.post(
        f"/api/v1/profiles/{profile.id}/users",
        json={"username": "alice"},
        headers=auth_headers(owner),
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json() == {"user_id": user.id, "role": "admin", "created_by_id": owner.id}

    response = client.get(f"/api/v1/profiles/{profile.id}/users", headers=auth_headers(owner))
    assert response.status_code == status.HTTP_200_OK
    assert [(u["user_id"], u["role"]) for u in response.json()] == [
        (owner.id, "owner"),
        (user.id, "admin"),
    ]

    response = client.get(f"/api/v1/profiles/{profile.id}/users", headers=auth_headers(user))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete(
        f"/api/v1/profiles/{profile.id}/users/{user.id}", headers=auth_headers(owner)
    )
    assert response.status_code == status.HTTP_204_NO_CONTENT


def test_share_requires_profile_owner(client, make_user, owner, community, join, auth_headers) -> None:
    _, _, profile = join(make_user(), "alice")
    join(make_user(), "bob")

    response = client.post(
        f"/api/v1/profiles/{profile.id}/users",
        json={"username": "bob"},
        headers=auth_headers(owner),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "forbidden"


def test_share_primary_profile_is_rejected(
    client, db_session, make_user, owner, community, join, auth_headers
) -> None:
    join(make_user(), "bob")
    primary_id = get_primary_profile_id_for_user_in_community(db_session, owner.id, community.id)

    response = client.post(
        f"/api/v1/profiles/{primary_id}/users",
        json={"username": "bob"},
        headers=auth_headers(owner),
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "invalid_state"


def test_share_unknown_profile(client, owner, community, auth_headers) -> None:
    response = client.post(
        "/api/v1/profiles/99999/users",
        json={"username": "owner"},
        headers=auth_headers(owner),
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["code"] == "not_found"
