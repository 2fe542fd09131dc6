"""
Integration tests for API endpoints.
"""

import pytest
from sqlalchemy import update

from bookledger.api.middleware import status_code_for
from bookledger.exceptions import InvalidInputError
from bookledger.storage import BookModel

pytestmark = pytest.mark.asyncio


async def create_book(client, data) -> dict:
    response = await client.post("/api/v1/books", json=data)
    assert response.status_code == 201, response.text
    return response.json()


async def create_user(client, email="ada@example.com", **extra) -> dict:
    payload = {"email": email, "first_name": "Ada", "last_name": "Lovelace", **extra}
    response = await client.post("/api/v1/users", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["environment"] == "test"

    async def test_request_id_is_echoed(self, client):
        response = await client.get("/api/v1/books", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"


class TestBooksEndpoints:
    """Tests for book CRUD endpoints."""

    async def test_create_book(self, client, sample_book_data):
        data = await create_book(client, sample_book_data)

        assert data["title"] == sample_book_data["title"]
        assert data["available_copies"] == 3
        assert data["borrowed_copies"] == 0

    async def test_duplicate_isbn_is_conflict(self, client, sample_book_data):
        await create_book(client, sample_book_data)

        response = await client.post("/api/v1/books", json=sample_book_data)

        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE_RESOURCE"

    async def test_zero_copies_is_business_rule(self, client, sample_book_data):
        response = await client.post("/api/v1/books", json={**sample_book_data, "total_copies": 0})

        assert response.status_code == 422
        assert response.json()["error"] == "Total copies must be at least 1"

    async def test_invalid_payload_is_bad_request(self, client, sample_book_data):
        response = await client.post("/api/v1/books", json={**sample_book_data, "genre": "POETRY"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["path"] == "/api/v1/books"

    async def test_blank_title_is_bad_request(self, client, sample_book_data):
        response = await client.post("/api/v1/books", json={**sample_book_data, "title": "   "})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_short_isbn_is_bad_request(self, client, sample_book_data):
        response = await client.post("/api/v1/books", json={**sample_book_data, "isbn": "123"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_full_text_search(self, client, sample_books_batch):
        for book in sample_books_batch:
            await create_book(client, book)

        response = await client.get("/api/v1/books/search/full-text", params={"q": "history time"})

        assert response.status_code == 200
        assert [b["title"] for b in response.json()] == ["A Brief History of Time"]

    async def test_full_text_search_requires_query(self, client):
        response = await client.get("/api/v1/books/search/full-text")

        assert response.status_code == 400

    async def test_get_nonexistent_book(self, client):
        response = await client.get("/api/v1/books/999")

        assert response.status_code == 404
        body = response.json()
        assert body["code"] == "RESOURCE_NOT_FOUND"
        assert body["path"] == "/api/v1/books/999"
        assert "timestamp" in body

    async def test_get_by_isbn(self, client, sample_book_data):
        created = await create_book(client, sample_book_data)

        response = await client.get(f"/api/v1/books/isbn/{sample_book_data['isbn']}")

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    async def test_search_books(self, client, sample_books_batch):
        for book in sample_books_batch:
            await create_book(client, book)

        response = await client.get("/api/v1/books", params={"q": "history", "page_size": 10})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["books"][0]["author"] == "Stephen Hawking"
        assert data["has_more"] is False

    async def test_page_size_is_capped(self, client):
        response = await client.get("/api/v1/books", params={"page_size": 500})

        assert response.status_code == 200
        assert response.json()["page_size"] == 50

    async def test_list_genres(self, client):
        response = await client.get("/api/v1/books/genres")

        assert response.status_code == 200
        assert "FANTASY" in response.json()

    async def test_update_book(self, client, sample_book_data):
        created = await create_book(client, sample_book_data)

        response = await client.put(
            f"/api/v1/books/{created['id']}",
            json={"title": "Updated Title", "total_copies": 5},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Updated Title"
        assert data["available_copies"] == 5

    async def test_set_copies_below_borrowed(self, client, sample_book_data):
        book = await create_book(client, {**sample_book_data, "total_copies": 2})
        for i in range(2):
            user = await create_user(client, email=f"reader{i}@example.com")
            await client.post(f"/api/v1/inventory/books/{book['id']}/borrow", json={"user_id": user["id"]})

        response = await client.patch(f"/api/v1/books/{book['id']}/copies", json={"total_copies": 1})

        assert response.status_code == 422
        assert response.json()["code"] == "BUSINESS_RULE_VIOLATION"

    async def test_delete_book(self, client, sample_book_data):
        created = await create_book(client, sample_book_data)

        response = await client.delete(f"/api/v1/books/{created['id']}")
        assert response.status_code == 204

        get_response = await client.get(f"/api/v1/books/{created['id']}")
        assert get_response.status_code == 404


class TestInventoryEndpoints:
    """Tests for borrow/return endpoints."""

    async def test_borrow_and_return(self, client, sample_book_data, clock):
        book = await create_book(client, sample_book_data)
        user = await create_user(client)

        borrow = await client.post(f"/api/v1/inventory/books/{book['id']}/borrow", json={"user_id": user["id"]})
        assert borrow.status_code == 200
        record = borrow.json()
        assert record["status"] == "BORROWED"
        assert record["borrow_date"] == clock.today.isoformat()
        assert record["due_date"] == "2024-03-18"
        assert record["is_overdue"] is False

        status_response = await client.get(
            f"/api/v1/inventory/books/{book['id']}/status", params={"user_id": user["id"]}
        )
        assert status_response.json()["has_borrowed"] is True

        returned = await client.post(f"/api/v1/inventory/books/{book['id']}/return", json={"user_id": user["id"]})
        assert returned.status_code == 200
        assert returned.json()["status"] == "RETURNED"

        book_after = await client.get(f"/api/v1/books/{book['id']}")
        assert book_after.json()["available_copies"] == 3

    async def test_borrow_twice_is_unprocessable(self, client, sample_book_data):
        book = await create_book(client, sample_book_data)
        user = await create_user(client)
        url = f"/api/v1/inventory/books/{book['id']}/borrow"

        await client.post(url, json={"user_id": user["id"]})
        response = await client.post(url, json={"user_id": user["id"]})

        assert response.status_code == 422
        assert response.json()["error"] == "You have already borrowed this book"

    async def test_borrow_unknown_user(self, client, sample_book_data):
        book = await create_book(client, sample_book_data)

        response = await client.post(f"/api/v1/inventory/books/{book['id']}/borrow", json={"user_id": 999})

        assert response.status_code == 404

    async def test_return_without_borrow(self, client, sample_book_data):
        book = await create_book(client, sample_book_data)
        user = await create_user(client)

        response = await client.post(f"/api/v1/inventory/books/{book['id']}/return", json={"user_id": user["id"]})

        assert response.status_code == 422

    async def test_broken_counter_on_return_is_server_error(self, client, database, sample_book_data):
        book = await create_book(client, sample_book_data)
        user = await create_user(client)
        await client.post(f"/api/v1/inventory/books/{book['id']}/borrow", json={"user_id": user["id"]})

        with database.transaction() as session:
            session.execute(
                update(BookModel)
                .where(BookModel.id == book["id"])
                .values(available_copies=BookModel.total_copies)
            )

        response = await client.post(f"/api/v1/inventory/books/{book['id']}/return", json={"user_id": user["id"]})

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "INVARIANT_VIOLATION"
        assert "all copies are already available" in body["error"]
        assert body["path"] == f"/api/v1/inventory/books/{book['id']}/return"

        status_response = await client.get(
            f"/api/v1/inventory/books/{book['id']}/status", params={"user_id": user["id"]}
        )
        assert status_response.json()["has_borrowed"] is True

    async def test_history_and_overdue(self, client, sample_book_data, clock):
        book = await create_book(client, sample_book_data)
        user = await create_user(client)
        await client.post(f"/api/v1/inventory/books/{book['id']}/borrow", json={"user_id": user["id"]})

        clock.advance(8)

        history = await client.get(f"/api/v1/inventory/users/{user['id']}/borrows", params={"status": "BORROWED"})
        assert history.status_code == 200
        assert history.json()["total"] == 1
        assert history.json()["records"][0]["is_overdue"] is True

        overdue = await client.get("/api/v1/inventory/overdue")
        assert [r["user_id"] for r in overdue.json()] == [user["id"]]


class TestUsersEndpoints:
    """Tests for user endpoints."""

    async def test_register_and_fetch(self, client):
        user = await create_user(client)

        response = await client.get(f"/api/v1/users/{user['id']}")

        assert response.status_code == 200
        assert response.json()["full_name"] == "Ada Lovelace"
        assert response.json()["role"] == "MEMBER"

    async def test_duplicate_email(self, client):
        await create_user(client)

        response = await client.post(
            "/api/v1/users",
            json={"email": "ADA@example.com", "first_name": "A", "last_name": "L"},
        )

        assert response.status_code == 409

    async def test_blank_first_name_is_bad_request(self, client):
        response = await client.post(
            "/api/v1/users",
            json={"email": "new@example.com", "first_name": " ", "last_name": "X"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

        lookup = await client.get("/api/v1/users/count")
        assert lookup.json() == {"count": 0}

    async def test_invalid_input_maps_to_bad_request(self):
        assert status_code_for(InvalidInputError.blank("title")) == 400

    async def test_invalid_email(self, client):
        response = await client.post(
            "/api/v1/users",
            json={"email": "not-an-email", "first_name": "A", "last_name": "L"},
        )

        assert response.status_code == 400

    async def test_change_role_and_count(self, client):
        user = await create_user(client)

        response = await client.patch(f"/api/v1/users/{user['id']}/role", json={"role": "ADMIN"})
        assert response.status_code == 200

        count = await client.get("/api/v1/users/count/ADMIN")
        assert count.json() == {"count": 1}

    async def test_search(self, client):
        await create_user(client)

        response = await client.get("/api/v1/users/search", params={"last_name": "love"})

        assert response.status_code == 200
        assert len(response.json()) == 1


class TestStatisticsEndpoints:
    """Tests for statistics endpoints."""

    async def test_availability(self, client, sample_books_batch):
        for book in sample_books_batch:
            await create_book(client, book)

        count = await client.get("/api/v1/statistics/books/count")
        percentage = await client.get("/api/v1/statistics/books/availability/percentage")
        by_genre = await client.get("/api/v1/statistics/books/genre/FICTION/count")

        assert count.json() == {"count": 4}
        assert percentage.json() == {"percentage": 100.0}
        assert by_genre.json() == {"count": 2}
