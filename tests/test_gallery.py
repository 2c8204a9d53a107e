import pytest

from roots.models.gallery import GalleryItem

PNG = b"\x89PNG\r\n\x1a\n image bytes"


def _create(client, headers, *, url="/my/gallery", public=True, **fields):
    data = {"title": "Village square", "location": "Lviv", "year": "1912", **fields}
    data["isPublic"] = "true" if public else "false"
    return client.post(url, data=data, files={"image": ("square.png", PNG, "image/png")}, headers=headers)


@pytest.fixture
def owner_headers(owner, login):
    return login(owner)


def test_create_item(client, store, owner_headers):
    r = _create(client, owner_headers)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["message"] == "Gallery item uploaded successfully"
    item = body["item"]
    assert item["id"] == body["id"]
    assert item["imagePath"].startswith("/uploads/gallery/")
    assert item["isPublic"] is True
    assert store.resolve_stored_path(item["imagePath"]).read_bytes() == PNG


def test_private_item_image_stays_public_path(client, owner_headers):
    item = _create(client, owner_headers, public=False).json()["item"]
    assert item["isPublic"] is False
    assert item["imagePath"].startswith("/uploads/gallery/")


def test_image_and_title_required(client, owner_headers):
    r = client.post("/my/gallery", data={"title": "No image"}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Image file is required"

    r = client.post("/my/gallery", data={"title": ""}, files={"image": ("a.png", PNG, "image/png")},
                    headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Title is required"


@pytest.mark.parametrize("name,content_type", [
    ("notes.txt", "text/plain"),
    ("fake.png", "application/pdf"),
    ("photo.bmp", "image/bmp"),
])
def test_only_images_accepted(client, store, owner_headers, name, content_type):
    r = client.post("/my/gallery", data={"title": "Bad"}, files={"image": (name, b"data", content_type)},
                    headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Only image files are allowed"
    assert list((store.public_root / "gallery").iterdir()) == []


def test_public_listing_and_visibility(client, owner, owner_headers):
    public_id = _create(client, owner_headers).json()["id"]
    private_id = _create(client, owner_headers, public=False).json()["id"]

    r = client.get("/gallery")
    assert r.status_code == 200
    items = r.json()["gallery"]
    assert [i["id"] for i in items] == [public_id]
    assert items[0]["uploader"] == {"id": owner["id"], "fullName": owner["full_name"], "email": None}

    assert client.get(f"/gallery/{public_id}").json()["item"]["id"] == public_id
    assert client.get(f"/gallery/{private_id}").status_code == 403
    r = client.get("/gallery/999")
    assert r.status_code == 404
    assert r.json()["message"] == "Gallery item not found"


def test_partial_update(client, database, owner_headers):
    item_id = _create(client, owner_headers, photographer="Unknown").json()["id"]
    r = client.put(f"/my/gallery/{item_id}", data={"year": "1913", "photographer": ""}, headers=owner_headers)
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Gallery item updated successfully"

    with database.session() as db:
        item = db.get(GalleryItem, item_id)
        assert item.year == "1913"
        assert item.photographer is None
        assert item.location == "Lviv"
        assert item.title == "Village square"


def test_replacing_image_deletes_old(client, store, owner_headers):
    created = _create(client, owner_headers).json()
    old = store.resolve_stored_path(created["item"]["imagePath"])
    r = client.put(f"/my/gallery/{created['id']}", files={"image": ("new.jpg", b"jpeg", "image/jpeg")},
                   headers=owner_headers)
    assert r.status_code == 200, r.text
    assert not old.exists()
    assert r.json()["item"]["imagePath"].endswith(".jpg")


def test_other_user_cannot_touch_item(client, owner_headers, other, make_user, login):
    item_id = _create(client, owner_headers).json()["id"]
    stranger = login(other)
    assert client.get(f"/my/gallery/{item_id}", headers=stranger).status_code == 403
    assert client.put(f"/my/gallery/{item_id}", data={"title": "x"}, headers=stranger).status_code == 403
    assert client.delete(f"/my/gallery/{item_id}", headers=stranger).status_code == 403

    curator = login(make_user(permissions=["manage_gallery"]))
    assert client.put(f"/my/gallery/{item_id}", data={"title": "Fixed"}, headers=curator).status_code == 200


def test_admin_scope(client, owner, owner_headers, make_user, login):
    _create(client, owner_headers, public=False)
    curator = login(make_user(permissions=["manage_gallery"]))

    items = client.get("/admin/gallery", headers=curator).json()["gallery"]
    assert len(items) == 1
    assert items[0]["uploader"]["email"] == owner["email"]

    r = _create(client, curator, url="/admin/gallery")
    assert r.status_code == 201
    assert r.json()["message"] == "Gallery item created successfully"

    assert client.get("/admin/gallery", headers=owner_headers).status_code == 403


def test_delete_removes_image(client, store, owner_headers):
    created = _create(client, owner_headers).json()
    path = store.resolve_stored_path(created["item"]["imagePath"])
    r = client.delete(f"/my/gallery/{created['id']}", headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Gallery item deleted successfully"
    assert not path.exists()


def test_failed_commit_keeps_old_image(client, database, store, owner_headers, stored_files, failing_commits):
    created = _create(client, owner_headers).json()
    old_path = created["item"]["imagePath"]
    files_before = stored_files()

    with failing_commits():
        r = client.put(f"/my/gallery/{created['id']}", data={"title": "New"},
                       files={"image": ("new.jpg", b"jpeg", "image/jpeg")}, headers=owner_headers)
    assert r.status_code == 503

    with database.session() as db:
        item = db.get(GalleryItem, created["id"])
        assert item.image_path == old_path
        assert item.title == "Village square"
    assert stored_files() == files_before
    assert store.resolve_stored_path(old_path).read_bytes() == PNG


def test_overlong_year_is_rejected(client, owner_headers, stored_files):
    r = _create(client, owner_headers, year="1" * 21)
    assert r.status_code == 400
    assert r.json()["message"] == "year must be at most 20 characters"
    assert stored_files() == set()
