from sqlalchemy import func, or_, select

from quill.core.security import token_issuer
from quill.models.follow import Follows
from quill.models.user import Account, Profile, Role, User
from quill.services.account_service import ProfileFields, ProviderIdentity, account_service


async def test_update_own_profile(client, register):
    user_id, headers = await register("wina@example.com")

    response = await client.patch(
        f"/api/users/{user_id}/profile",
        json={"lastName": "Putri", "mobileNumber": "+6281234567890", "gender": "FEMALE", "birthOfDate": "1998-04-12"},
        headers=headers,
    )

    assert response.status_code == 200
    profile = response.json()["data"]
    assert profile["firstName"] == "Wina"
    assert profile["lastName"] == "Putri"
    assert profile["mobileNumber"] == "+6281234567890"
    assert profile["gender"] == "FEMALE"
    assert profile["birthOfDate"] == "1998-04-12"


async def test_duplicate_mobile_number_conflicts(client, register):
    wina_id, wina_headers = await register("wina@example.com")
    budi_id, budi_headers = await register("budi@example.com", first_name="Budi")

    await client.patch(f"/api/users/{wina_id}/profile", json={"mobileNumber": "+6281234567890"}, headers=wina_headers)
    response = await client.patch(
        f"/api/users/{budi_id}/profile", json={"mobileNumber": "+6281234567890"}, headers=budi_headers
    )

    assert response.status_code == 409
    assert response.json()["message"] == "mobile number already in use"


async def test_invalid_mobile_number_is_validation_error(client, register):
    user_id, headers = await register("wina@example.com")

    response = await client.patch(f"/api/users/{user_id}/profile", json={"mobileNumber": "12ab"}, headers=headers)

    assert response.status_code == 422


async def test_null_first_name_is_validation_error(client, register):
    user_id, headers = await register("wina@example.com")

    response = await client.patch(f"/api/users/{user_id}/profile", json={"firstName": None}, headers=headers)

    assert response.status_code == 422
    profile = (await client.get(f"/api/users/{user_id}/profile", headers=headers)).json()["data"]
    assert profile["firstName"] == "Wina"


async def test_cannot_update_someone_elses_profile(client, register):
    wina_id, _ = await register("wina@example.com")
    _, budi_headers = await register("budi@example.com", first_name="Budi")

    response = await client.patch(f"/api/users/{wina_id}/profile", json={"lastName": "X"}, headers=budi_headers)

    assert response.status_code == 401


async def test_admin_can_update_any_profile(client, register, session_maker):
    wina_id, _ = await register("wina@example.com")
    admin_id, admin_headers = await register("admin@example.com", first_name="Admin")
    async with session_maker() as db:
        admin = await db.get(User, admin_id)
        admin.role = Role.ADMIN
        await db.commit()

    response = await client.patch(f"/api/users/{wina_id}/profile", json={"lastName": "X"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["lastName"] == "X"


async def test_delete_user_cascades(client, register, session_maker):
    wina_id, wina_headers = await register("wina@example.com")
    budi_id, budi_headers = await register("budi@example.com", first_name="Budi")
    await client.post(f"/api/users/{wina_id}/follow/{budi_id}", headers=wina_headers)
    await client.post(f"/api/users/{budi_id}/follow/{wina_id}", headers=budi_headers)

    response = await client.delete(f"/api/users/{wina_id}", headers=wina_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "delete user"

    profile = await client.get(f"/api/users/{wina_id}/profile", headers=budi_headers)
    assert profile.status_code == 404
    followers = (await client.get(f"/api/users/{budi_id}/followers")).json()["data"]
    assert followers == []

    async with session_maker() as db:
        assert await db.get(User, wina_id) is None
        profiles = await db.scalar(select(func.count()).select_from(Profile).where(Profile.user_id == wina_id))
        edges = await db.scalar(
            select(func.count())
            .select_from(Follows)
            .where(or_(Follows.follower_id == wina_id, Follows.following_id == wina_id))
        )
    assert profiles == 0
    assert edges == 0


async def test_token_of_deleted_user_is_unauthorized(client, register):
    wina_id, wina_headers = await register("wina@example.com")
    await client.delete(f"/api/users/{wina_id}", headers=wina_headers)

    response = await client.get("/api/users/current-user", headers=wina_headers)

    assert response.status_code == 401


async def test_delete_missing_user_as_admin(client, register, session_maker):
    admin_id, admin_headers = await register("admin@example.com", first_name="Admin")
    async with session_maker() as db:
        admin = await db.get(User, admin_id)
        admin.role = Role.ADMIN
        await db.commit()

    response = await client.delete("/api/users/no-such-user", headers=admin_headers)

    assert response.status_code == 404


async def test_delete_google_user_removes_accounts(client, session_maker):
    async with session_maker() as db:
        user = await account_service.register_or_link_external(
            db,
            ProviderIdentity(provider_type="google", provider_id="1234567890"),
            "wina@gmail.com",
            ProfileFields("Wina", "Safitri"),
        )
        user_id, email = user.id, user.email
    headers = {"Authorization": f"Bearer {token_issuer.issue(subject=user_id, email=email)}"}

    response = await client.delete(f"/api/users/{user_id}", headers=headers)

    assert response.status_code == 200
    async with session_maker() as db:
        accounts = await db.scalar(select(func.count()).select_from(Account).where(Account.user_id == user_id))
        profiles = await db.scalar(select(func.count()).select_from(Profile).where(Profile.user_id == user_id))
    assert accounts == 0
    assert profiles == 0
