import pytest

from quill.services.post_service import normalize_tags, slugify
from quill.storage.local_storage import storage

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
SUMMARY = "A short summary of the post that is long enough to pass validation."
BODY = "The body of the post. " * 5


def post_form(title="10 Tips for Time Management", tags=("Productivity", "life")):
    return {"title": title, "summary": SUMMARY, "body": BODY, "tags": list(tags)}


def cover_file(name="cover.png", content_type="image/png"):
    return {"cover": (name, PNG_BYTES, content_type)}


@pytest.fixture
def create_post(client):
    async def _create_post(headers, **kwargs):
        return await client.post("/api/posts", data=post_form(**kwargs), files=cover_file(), headers=headers)

    return _create_post


def test_slugify():
    assert slugify("10 tips for time management!") == "10-tips-for-time-management"
    assert slugify("  Hello,   World  ") == "hello-world"


def test_normalize_tags():
    assert normalize_tags(["Python", " python ", "", "FastAPI"]) == ["python", "fastapi"]


async def test_create_and_get_post(client, register, create_post):
    user_id, headers = await register("wina@example.com")

    response = await create_post(headers)

    assert response.status_code == 201
    post = response.json()["data"]
    assert post["authorId"] == user_id
    assert post["title"] == "10 tips for time management"
    assert post["slug"] == "10-tips-for-time-management"
    assert post["cover"].startswith("/posts/10-tips-for-time-management-")
    assert post["cover"].endswith(".png")
    assert sorted(tag["name"] for tag in post["tags"]) == ["life", "productivity"]
    assert storage.get_file_path(post["cover"]).exists()

    fetched = await client.get(f"/api/posts/{post['slug']}")
    assert fetched.status_code == 200
    assert fetched.json()["data"]["id"] == post["id"]


async def test_create_post_requires_token(client):
    response = await client.post("/api/posts", data=post_form(), files=cover_file())

    assert response.status_code == 401


async def test_duplicate_title_conflicts(client, register, create_post):
    _, headers = await register("wina@example.com")
    await create_post(headers)

    response = await create_post(headers, title="10 Tips For Time Management")

    assert response.status_code == 409
    assert response.json()["message"] == "post already exist"


async def test_unsupported_cover_type(client, register):
    _, headers = await register("wina@example.com")

    response = await client.post(
        "/api/posts", data=post_form(), files=cover_file("cover.gif", "image/gif"), headers=headers
    )

    assert response.status_code == 400


async def test_short_summary_is_validation_error(client, register):
    _, headers = await register("wina@example.com")
    form = post_form()
    form["summary"] = "too short"

    response = await client.post("/api/posts", data=form, files=cover_file(), headers=headers)

    assert response.status_code == 422


async def test_tags_are_shared_between_posts(client, register, create_post):
    _, headers = await register("wina@example.com")
    first = (await create_post(headers, tags=("python",))).json()["data"]
    second = (await create_post(headers, title="Another python article", tags=("Python",))).json()["data"]

    assert first["tags"][0]["id"] == second["tags"][0]["id"]


async def test_list_posts_search_and_sort(client, register, create_post):
    user_id, headers = await register("wina@example.com")
    await create_post(headers, title="Learning FastAPI quickly")
    await create_post(headers, title="Baking sourdough bread")

    search = (await client.get("/api/posts", params={"q": "fastapi"})).json()["data"]
    assert [p["slug"] for p in search] == ["learning-fastapi-quickly"]

    by_title = (await client.get("/api/posts", params={"sortBy": "title-asc"})).json()["data"]
    assert [p["title"] for p in by_title] == ["baking sourdough bread", "learning fastapi quickly"]

    paged = (await client.get("/api/posts", params={"sortBy": "title-asc", "take": 1, "skip": 1})).json()["data"]
    assert [p["title"] for p in paged] == ["learning fastapi quickly"]

    user_posts = await client.get(f"/api/users/{user_id}/posts")
    assert user_posts.status_code == 200
    assert len(user_posts.json()["data"]) == 2


async def test_user_posts_for_unknown_user(client):
    response = await client.get("/api/users/no-such-user/posts")

    assert response.status_code == 404


async def test_get_missing_post(client):
    response = await client.get("/api/posts/does-not-exist")

    assert response.status_code == 404
    assert response.json()["message"] == "post not found"


async def test_update_post(client, register, create_post):
    _, headers = await register("wina@example.com")
    await create_post(headers)

    response = await client.patch(
        "/api/posts/10-tips-for-time-management",
        data={"title": "Twelve tips for time management", "tags": ["focus"]},
        headers=headers,
    )

    assert response.status_code == 200
    post = response.json()["data"]
    assert post["slug"] == "twelve-tips-for-time-management"
    assert [tag["name"] for tag in post["tags"]] == ["focus"]
    assert post["summary"] == SUMMARY


async def test_only_author_can_update_or_delete(client, register, create_post):
    _, wina_headers = await register("wina@example.com")
    _, budi_headers = await register("budi@example.com", first_name="Budi")
    await create_post(wina_headers)

    update = await client.patch(
        "/api/posts/10-tips-for-time-management", data={"body": BODY + "more"}, headers=budi_headers
    )
    delete = await client.delete("/api/posts/10-tips-for-time-management", headers=budi_headers)

    assert update.status_code == 401
    assert delete.status_code == 401


async def test_delete_post_removes_cover(client, register, create_post):
    _, headers = await register("wina@example.com")
    cover = (await create_post(headers)).json()["data"]["cover"]

    response = await client.delete("/api/posts/10-tips-for-time-management", headers=headers)

    assert response.status_code == 200
    assert (await client.get("/api/posts/10-tips-for-time-management")).status_code == 404
    assert not storage.get_file_path(cover).exists()


async def test_bookmarks(client, register, create_post):
    _, wina_headers = await register("wina@example.com")
    _, budi_headers = await register("budi@example.com", first_name="Budi")
    post_id = (await create_post(wina_headers)).json()["data"]["id"]

    added = await client.post(f"/api/bookmarks/{post_id}", headers=budi_headers)
    duplicate = await client.post(f"/api/bookmarks/{post_id}", headers=budi_headers)
    listed = await client.get("/api/bookmarks", headers=budi_headers)

    assert added.status_code == 201
    assert duplicate.status_code == 409
    assert [p["id"] for p in listed.json()["data"]] == [post_id]

    removed = await client.delete(f"/api/bookmarks/{post_id}", headers=budi_headers)
    removed_again = await client.delete(f"/api/bookmarks/{post_id}", headers=budi_headers)

    assert removed.status_code == 200
    assert removed_again.status_code == 404


async def test_bookmark_missing_post(client, register):
    _, headers = await register("wina@example.com")

    response = await client.post("/api/bookmarks/no-such-post", headers=headers)

    assert response.status_code == 404


async def test_deleting_post_removes_its_bookmarks(client, register, create_post):
    _, wina_headers = await register("wina@example.com")
    _, budi_headers = await register("budi@example.com", first_name="Budi")
    post_id = (await create_post(wina_headers)).json()["data"]["id"]
    await client.post(f"/api/bookmarks/{post_id}", headers=budi_headers)

    await client.delete("/api/posts/10-tips-for-time-management", headers=wina_headers)

    assert (await client.get("/api/bookmarks", headers=budi_headers)).json()["data"] == []


async def test_reused_slug_keeps_renamed_posts_cover(client, register):
    _, headers = await register("wina@example.com")
    first = await client.post(
        "/api/posts",
        data=post_form(title="First title here"),
        files={"cover": ("cover.png", b"AAAA", "image/png")},
        headers=headers,
    )
    await client.patch("/api/posts/first-title-here", data={"title": "Second title here"}, headers=headers)
    second = await client.post(
        "/api/posts",
        data=post_form(title="First title here"),
        files={"cover": ("cover.png", b"BBBB", "image/png")},
        headers=headers,
    )

    first_cover = first.json()["data"]["cover"]
    assert second.status_code == 201
    assert second.json()["data"]["cover"] != first_cover

    await client.delete("/api/posts/first-title-here", headers=headers)

    renamed = (await client.get("/api/posts/second-title-here")).json()["data"]
    assert renamed["cover"] == first_cover
    assert storage.get_file_path(first_cover).read_bytes() == b"AAAA"
