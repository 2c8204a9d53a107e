import pytest
from sqlalchemy import select

from roots.models.activity_log import ActivityLog
from roots.books import service as books_service
from roots.models.book import Book

PDF = b"%PDF-1.4 test document"
COVER = b"\x89PNG\r\n\x1a\n cover"


def _create(client, headers, *, public=True, cover=True, **fields):
    data = {"title": "Parish Register", "author": "Clerk", "category": "records", **fields}
    data["isPublic"] = "true" if public else "false"
    files = {"file": ("register.pdf", PDF, "application/pdf")}
    if cover:
        files["cover"] = ("cover.png", COVER, "image/png")
    return client.post("/my/books", data=data, files=files, headers=headers)


def _book(database, book_id):
    with database.session() as db:
        book = db.get(Book, book_id)
        db.expunge(book)
        return book


@pytest.fixture
def owner_headers(owner, login):
    return login(owner)


def test_create_public_book(client, database, store, owner_headers):
    r = _create(client, owner_headers)
    assert r.status_code == 201, r.text
    book = _book(database, r.json()["id"])
    assert book.is_public
    assert book.file_path.startswith("/uploads/books/")
    assert book.cover_path.startswith("/uploads/books/")
    assert book.file_size == len(PDF)
    assert store.resolve_stored_path(book.file_path).read_bytes() == PDF


def test_create_private_book_without_cover(client, database, store, owner_headers):
    r = _create(client, owner_headers, public=False, cover=False)
    assert r.status_code == 201, r.text
    book = _book(database, r.json()["id"])
    assert book.file_path.startswith("private/books/")
    assert store.resolve_stored_path(book.file_path).parent == store.private_root / "books"
    assert book.cover_path is None


def test_public_book_requires_cover(client, owner_headers):
    r = _create(client, owner_headers, cover=False)
    assert r.status_code == 400
    assert r.json()["message"] == "Cover image is required"


def test_title_and_file_required(client, owner_headers):
    r = client.post("/my/books", data={"title": "   "}, files={"file": ("a.pdf", PDF, "application/pdf")},
                    headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Title and file are required"
    r = client.post("/my/books", data={"title": "No file"}, headers=owner_headers)
    assert r.status_code == 400


def test_public_listing_hides_private_books(client, owner_headers):
    public_id = _create(client, owner_headers, title="Open").json()["id"]
    private_id = _create(client, owner_headers, public=False, cover=False, title="Closed").json()["id"]

    r = client.get("/books")
    assert r.status_code == 200
    assert r.headers["Cache-Control"] == "no-store"
    assert [b["id"] for b in r.json()] == [public_id]
    assert r.json()[0]["fileUrl"].startswith("/uploads/books/")

    assert client.get(f"/books/{private_id}").status_code == 403
    assert client.get(f"/books/{private_id}/download").status_code == 403


def test_my_listing_shows_private_without_url(client, owner_headers):
    _create(client, owner_headers, public=False, cover=False)
    [book] = client.get("/my/books", headers=owner_headers).json()
    assert book["isPublic"] is False
    assert book["fileUrl"] is None


@pytest.mark.parametrize("raw", ["abc", "0", "-3", "1.5", "+5", "1_000", "\u0663"])
def test_invalid_ids_are_400(client, raw):
    r = client.get(f"/books/{raw}")
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid book id"


def test_unknown_book_is_404(client):
    assert client.get("/books/424242").status_code == 404


def test_partial_update_keeps_other_fields(client, database, owner_headers):
    book_id = _create(client, owner_headers, description="Original").json()["id"]
    before = _book(database, book_id)

    r = client.put(f"/my/books/{book_id}", json={"category": "census"}, headers=owner_headers)
    assert r.status_code == 200, r.text
    after = _book(database, book_id)
    assert after.category == "census"
    assert after.title == before.title
    assert after.author == before.author
    assert after.description == "Original"
    assert after.file_path == before.file_path
    assert after.cover_path == before.cover_path
    assert after.is_public is True


@pytest.mark.parametrize("as_json", [True, False])
def test_blank_field_clears_value(client, database, owner_headers, as_json):
    book_id = _create(client, owner_headers, description="Will go").json()["id"]
    body = {"description": ""}
    if as_json:
        r = client.put(f"/my/books/{book_id}", json=body, headers=owner_headers)
    else:
        r = client.put(f"/my/books/{book_id}", data=body, headers=owner_headers)
    assert r.status_code == 200, r.text
    assert _book(database, book_id).description is None


def test_blank_title_is_rejected(client, owner_headers):
    book_id = _create(client, owner_headers).json()["id"]
    r = client.put(f"/my/books/{book_id}", json={"title": ""}, headers=owner_headers)
    assert r.status_code == 400


def test_visibility_round_trip_moves_file(client, database, store, owner_headers):
    book_id = _create(client, owner_headers, public=False, cover=False).json()["id"]
    private_path = _book(database, book_id).file_path
    name = private_path.rsplit("/", 1)[1]

    client.put(f"/my/books/{book_id}", json={"isPublic": True}, headers=owner_headers)
    public_path = _book(database, book_id).file_path
    assert public_path == f"/uploads/books/{name}"
    assert not (store.private_root / "books" / name).exists()
    assert (store.public_root / "books" / name).read_bytes() == PDF

    client.put(f"/my/books/{book_id}", data={"isPublic": "false"}, headers=owner_headers)
    assert _book(database, book_id).file_path == private_path
    assert (store.private_root / "books" / name).read_bytes() == PDF
    assert not (store.public_root / "books" / name).exists()


def test_replacing_file_deletes_old_one(client, database, store, owner_headers):
    book_id = _create(client, owner_headers).json()["id"]
    old = store.resolve_stored_path(_book(database, book_id).file_path)

    r = client.put(f"/my/books/{book_id}", data={"title": "New edition"},
                   files={"file": ("v2.pdf", b"second", "application/pdf")}, headers=owner_headers)
    assert r.status_code == 200, r.text
    book = _book(database, book_id)
    assert not old.exists()
    assert store.resolve_stored_path(book.file_path).read_bytes() == b"second"
    assert book.file_size == len(b"second")


def test_downloads_are_counted(client, owner_headers):
    book_id = _create(client, owner_headers).json()["id"]
    for _ in range(3):
        r = client.get(f"/books/{book_id}/download")
        assert r.status_code == 200
        assert r.content == PDF
    assert client.get(f"/books/{book_id}").json()["downloads"] == 3


def test_download_of_missing_file_is_404(client, database, store, owner_headers):
    book_id = _create(client, owner_headers).json()["id"]
    store.resolve_stored_path(_book(database, book_id).file_path).unlink()

    r = client.get(f"/books/{book_id}/download")
    assert r.status_code == 404
    assert r.json()["message"] == "File not found"
    assert _book(database, book_id).download_count == 0


def test_owner_scope_authorization(client, owner_headers, other, make_user, login):
    book_id = _create(client, owner_headers, public=False, cover=False).json()["id"]
    stranger = login(other)
    for method, url in (("get", f"/my/books/{book_id}"), ("get", f"/my/books/{book_id}/download"),
                        ("delete", f"/my/books/{book_id}")):
        assert client.request(method, url, headers=stranger).status_code == 403
    assert client.put(f"/my/books/{book_id}", json={"title": "x"}, headers=stranger).status_code == 403
    assert client.get(f"/my/books/{book_id}", headers=owner_headers).status_code == 200

    librarian = login(make_user(permissions=["manage_books"]))
    assert client.get(f"/my/books/{book_id}", headers=librarian).status_code == 200
    assert client.get(f"/my/books/{book_id}/download", headers=librarian).status_code == 200


def test_admin_scope_lists_everything(client, owner, owner_headers, make_user, login):
    _create(client, owner_headers, title="Public")
    _create(client, owner_headers, public=False, cover=False, title="Private")
    headers = login(make_user(permissions=["manage_books"]))

    r = client.get("/admin/books", headers=headers)
    assert r.status_code == 200
    books = r.json()
    assert {b["title"] for b in books} == {"Public", "Private"}
    assert all(b["uploadedBy"] == owner["full_name"] for b in books)


def test_delete_removes_files(client, database, store, owner_headers):
    book_id = _create(client, owner_headers).json()["id"]
    book = _book(database, book_id)
    file_path = store.resolve_stored_path(book.file_path)
    cover_path = store.resolve_stored_path(book.cover_path)

    r = client.delete(f"/my/books/{book_id}", headers=owner_headers)
    assert r.status_code == 200
    assert r.json() == {"message": "Deleted"}
    assert not file_path.exists()
    assert not cover_path.exists()
    assert client.get(f"/books/{book_id}").status_code == 404


def test_mutations_are_logged(client, database, owner, owner_headers):
    book_id = _create(client, owner_headers, title="Logged").json()["id"]
    client.delete(f"/my/books/{book_id}", headers=owner_headers)
    with database.session() as db:
        messages = list(db.scalars(
            select(ActivityLog.message).where(ActivityLog.user_id == owner["id"]).order_by(ActivityLog.id)
        ))
    assert messages == ["Uploaded book: Logged", "Deleted book: Logged"]


def test_oversized_cover_keeps_existing_files(client, database, owner_headers, stored_files, monkeypatch):
    book_id = _create(client, owner_headers).json()["id"]
    before = _book(database, book_id)
    files_before = stored_files()

    monkeypatch.setattr(books_service, "_max_bytes", lambda: 1024)
    r = client.put(
        f"/my/books/{book_id}",
        files={"file": ("v2.pdf", b"second", "application/pdf"),
               "cover": ("big.png", b"x" * 2048, "image/png")},
        headers=owner_headers,
    )
    assert r.status_code == 413

    after = _book(database, book_id)
    assert (after.file_path, after.cover_path) == (before.file_path, before.cover_path)
    assert stored_files() == files_before
    r = client.get(f"/books/{book_id}/download")
    assert r.status_code == 200
    assert r.content == PDF


def test_failed_commit_discards_new_upload(client, database, store, owner_headers, stored_files, failing_commits):
    book_id = _create(client, owner_headers).json()["id"]
    before = _book(database, book_id)
    files_before = stored_files()

    with failing_commits():
        r = client.put(f"/my/books/{book_id}", data={"title": "New"},
                       files={"file": ("v2.pdf", b"second", "application/pdf")}, headers=owner_headers)
    assert r.status_code == 503

    after = _book(database, book_id)
    assert after.title == before.title
    assert after.file_path == before.file_path
    assert stored_files() == files_before
    assert store.resolve_stored_path(after.file_path).read_bytes() == PDF


def test_failed_commit_moves_relocated_file_back(client, database, store, owner_headers, failing_commits):
    book_id = _create(client, owner_headers, public=False, cover=False).json()["id"]
    path = _book(database, book_id).file_path

    with failing_commits():
        r = client.put(f"/my/books/{book_id}", json={"isPublic": True}, headers=owner_headers)
    assert r.status_code == 503

    book = _book(database, book_id)
    assert book.is_public is False
    assert book.file_path == path
    assert store.resolve_stored_path(path).read_bytes() == PDF
    assert not (store.public_root / "books" / path.rsplit("/", 1)[1]).exists()


def test_overlong_title_is_rejected_before_saving(client, owner_headers, stored_files):
    r = _create(client, owner_headers, title="t" * 256)
    assert r.status_code == 400
    assert r.json()["message"] == "title must be at most 255 characters"
    assert stored_files() == set()

    book_id = _create(client, owner_headers).json()["id"]
    r = client.put(f"/my/books/{book_id}", json={"documentCode": "c" * 121}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "documentCode must be at most 120 characters"
