"""
Tests for the FastAPI application.
"""

import pytest
from fastapi.testclient import TestClient

from api.main import create_app


class TestBooks:
    """End-to-end tests for the books resource."""

    def test_book_lifecycle(self, client):
        """Test create, show, update, delete for one book."""
        response = client.post("/v1/books", json={"title": "T", "author": "A", "genre": "G"})
        assert response.status_code == 201
        book = response.json()["book"]
        assert book["id"] > 0
        assert response.headers["Location"] == f"/v1/books/{book['id']}"
        assert "created_at" not in book

        response = client.get(f"/v1/books/{book['id']}")
        assert response.status_code == 200
        assert response.json() == {"book": {
            "id": book["id"],
            "title": "T",
            "author": "A",
            "genre": "G",
            "average_rating": 0.0,
            "version": 1,
        }}

        response = client.patch(f"/v1/books/{book['id']}", json={"title": "T2"})
        assert response.status_code == 200
        updated = response.json()["book"]
        assert updated["title"] == "T2"
        assert updated["author"] == "A"
        assert updated["genre"] == "G"
        assert updated["version"] == 2

        response = client.delete(f"/v1/books/{book['id']}")
        assert response.status_code == 200
        assert response.json() == {"message": "book successfully deleted"}

        response = client.get(f"/v1/books/{book['id']}")
        assert response.status_code == 404
        assert response.json() == {"error": "the requested resource could not be found"}

    def test_create_requires_fields(self, client):
        """Test missing required fields are reported per field."""
        response = client.post("/v1/books", json={"genre": "Poetry"})
        assert response.status_code == 422
        assert response.json() == {"error": {
            "title": "must be provided",
            "author": "must be provided",
        }}

    def test_update_cannot_blank_required_field(self, client, create_book):
        """Test updates are validated against the merged record."""
        book = create_book()

        response = client.patch(f"/v1/books/{book['id']}", json={"author": ""})
        assert response.status_code == 422
        assert response.json() == {"error": {"author": "must be provided"}}

        stored = client.get(f"/v1/books/{book['id']}").json()["book"]
        assert stored["author"] == book["author"]
        assert stored["version"] == 1

    def test_null_fields_leave_values_unchanged(self, client, create_book):
        """Test explicit nulls in a partial update are ignored."""
        book = create_book()

        response = client.patch(f"/v1/books/{book['id']}", json={"title": None, "genre": "Classic"})
        assert response.status_code == 200
        updated = response.json()["book"]
        assert updated["title"] == book["title"]
        assert updated["genre"] == "Classic"

    @pytest.mark.parametrize("book_id", [
        "0", "-1", "abc", "1.5", "99999", "\u00b2", "99999999999999999999",
    ])
    def test_invalid_ids_are_not_found(self, client, book_id):
        """Test non-positive, non-numeric, out of range and unknown ids."""
        assert client.get(f"/v1/books/{book_id}").status_code == 404
        assert client.patch(f"/v1/books/{book_id}", json={"title": "x"}).status_code == 404
        assert client.delete(f"/v1/books/{book_id}").status_code == 404


class TestListing:
    """Tests for list endpoints, filters and pagination."""

    def test_list_with_sort_and_pagination(self, client, create_book):
        """Test descending sort with page metadata."""
        for title in ("Beloved", "Sula", "Jazz"):
            create_book(title=title, author="Toni Morrison")

        response = client.get("/v1/books", params={"sort": "-title", "page_size": 2})
        assert response.status_code == 200
        data = response.json()
        assert [b["title"] for b in data["books"]] == ["Sula", "Jazz"]
        assert data["metadata"] == {
            "current_page": 1,
            "page_size": 2,
            "first_page": 1,
            "last_page": 2,
            "total_records": 3,
        }

        data = client.get("/v1/books", params={"sort": "-title", "page_size": 2, "page": 2}).json()
        assert [b["title"] for b in data["books"]] == ["Beloved"]
        assert data["metadata"]["current_page"] == 2

    def test_list_defaults(self, client, create_book):
        """Test default sort is ascending id."""
        first = create_book(title="Zami")
        second = create_book(title="Akata")

        data = client.get("/v1/books").json()
        assert [b["id"] for b in data["books"]] == [first["id"], second["id"]]
        assert data["metadata"]["page_size"] == 10

    def test_search_filters(self, client, create_book):
        """Test case-insensitive partial matching on title and author."""
        create_book(title="The Fifth Season", author="N. K. Jemisin")
        create_book(title="The Obelisk Gate", author="N. K. Jemisin")
        create_book(title="Binti", author="Nnedi Okorafor")

        data = client.get("/v1/books", params={"title": "SEASON"}).json()
        assert [b["title"] for b in data["books"]] == ["The Fifth Season"]

        data = client.get("/v1/books", params={"author": "jemisin", "sort": "title"}).json()
        assert [b["title"] for b in data["books"]] == ["The Fifth Season", "The Obelisk Gate"]

    def test_empty_list(self, client):
        """Test an empty result carries empty metadata."""
        response = client.get("/v1/books")
        assert response.status_code == 200
        assert response.json() == {"books": [], "metadata": {}}

    @pytest.mark.parametrize("params,errors", [
        ({"sort": "bogus"}, {"sort": "invalid sort value"}),
        ({"page": "0"}, {"page": "must be greater than zero"}),
        ({"page": "501"}, {"page": "must not exceed 500"}),
        ({"page_size": "101"}, {"page_size": "must be a maximum of 100"}),
        ({"page": "abc"}, {"page": "must be an integer value"}),
        ({"page": "99999999999999999999"}, {"page": "must be an integer value"}),
        ({"page_size": "ten", "sort": "-genre"}, {"page_size": "must be an integer value",
                                                 "sort": "invalid sort value"}),
    ])
    def test_invalid_filters(self, client, params, errors):
        """Test invalid pagination and sort parameters are rejected."""
        response = client.get("/v1/books", params=params)
        assert response.status_code == 422
        assert response.json() == {"error": errors}


class TestRequestBodies:
    """Tests for malformed request bodies."""

    @pytest.mark.parametrize("content,message", [
        ('{"title": "T", ', "body contains badly-formed JSON"),
        ("", "body must not be empty"),
        ('{"title": "T", "isbn": "123"}', 'body contains unknown key "isbn"'),
        ('{"title": 5}', 'body contains incorrect JSON type for field "title"'),
        ('["T", "A"]', "body must contain a single JSON object"),
    ])
    def test_bad_bodies(self, client, content, message):
        """Test each decoding failure maps to a 400 with a message."""
        response = client.post("/v1/books", content=content, headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json() == {"error": message}


class TestOtherResources:
    """Tests for products, users and reviews."""

    def test_products(self, client):
        """Test product create, validation and category search."""
        response = client.post("/v1/products", json={"name": "Kettle", "category": "Kitchen",
                                                      "description": "1.7l", "image_url": "http://x/k.png"})
        assert response.status_code == 201
        product = response.json()["product"]
        assert response.headers["Location"] == f"/v1/products/{product['id']}"
        assert product["image_url"] == "http://x/k.png"
        assert product["version"] == 1

        client.post("/v1/products", json={"name": "Lamp", "category": "Lighting"})

        data = client.get("/v1/products", params={"category": "kitch"}).json()
        assert [p["name"] for p in data["products"]] == ["Kettle"]

        response = client.post("/v1/products", json={"description": "nameless"})
        assert response.status_code == 422
        assert response.json()["error"] == {"name": "must be provided", "category": "must be provided"}

        response = client.patch(f"/v1/products/{product['id']}", json={"category": "Appliances"})
        assert response.json()["product"]["version"] == 2

        assert client.delete(f"/v1/products/{product['id']}").json() == {
            "message": "product successfully deleted"
        }

    def test_users(self, client):
        """Test user create, length limit and sorting."""
        for email, name in (("b@example.com", "Bea"), ("a@example.com", "Al")):
            assert client.post("/v1/users", json={"email": email, "full_name": name}).status_code == 201

        data = client.get("/v1/users", params={"sort": "email"}).json()
        assert [u["email"] for u in data["users"]] == ["a@example.com", "b@example.com"]

        response = client.post("/v1/users", json={"email": "c@example.com", "full_name": "x" * 101})
        assert response.status_code == 422
        assert response.json() == {"error": {"full_name": "must not be more than 100 characters long"}}

    def test_reviews_nested_under_books(self, client, create_book):
        """Test review lifecycle under its parent book."""
        book = create_book()
        other = create_book(title="Other")
        base = f"/v1/books/{book['id']}/reviews"

        response = client.post(base, json={"content": "Great", "author": "Ann", "rating": 5})
        assert response.status_code == 201
        review = response.json()["review"]
        assert response.headers["Location"] == f"{base}/{review['id']}"
        assert review["product_id"] == book["id"]
        assert review["helpful_count"] == 0
        assert review["version"] == 1
        assert "created_at" in review

        assert client.get(f"{base}/{review['id']}").status_code == 200
        assert client.get(f"/v1/books/{other['id']}/reviews/{review['id']}").status_code == 404

        response = client.patch(f"{base}/{review['id']}", json={"helpful_count": 3})
        assert response.status_code == 200
        assert response.json()["review"]["helpful_count"] == 3
        assert response.json()["review"]["version"] == 2

        client.post(base, json={"content": "Meh", "author": "Bo", "rating": 2})
        data = client.get(base, params={"rating": 5}).json()
        assert [r["author"] for r in data["reviews"]] == ["Ann"]
        assert client.get(f"/v1/books/{other['id']}/reviews").json()["reviews"] == []

        response = client.delete(f"{base}/{review['id']}")
        assert response.json() == {"message": "review successfully deleted"}
        assert client.get(f"{base}/{review['id']}").status_code == 404

    def test_reviews_for_missing_book(self, client):
        """Test reviews of a missing or invalid parent are not found."""
        review = {"content": "Great", "author": "Ann", "rating": 5}
        assert client.post("/v1/books/999/reviews", json=review).status_code == 404
        assert client.post("/v1/books/abc/reviews", json=review).status_code == 404
        assert client.get("/v1/books/999/reviews").status_code == 404

    def test_reviews_across_books(self, client, create_book):
        """Test the top-level review listing covers every book."""
        first = create_book()
        second = create_book(title="Other")
        client.post(f"/v1/books/{first['id']}/reviews", json={"content": "Great", "author": "Ann", "rating": 5})
        client.post(f"/v1/books/{second['id']}/reviews", json={"content": "Dull", "author": "Bo", "rating": 2})
        client.post(f"/v1/books/{second['id']}/reviews", json={"content": "Great fun", "author": "Cy", "rating": 5})

        data = client.get("/v1/reviews").json()
        assert [r["product_id"] for r in data["reviews"]] == [first["id"], second["id"], second["id"]]
        assert data["metadata"]["total_records"] == 3

        data = client.get("/v1/reviews", params={"rating": 5, "sort": "-author"}).json()
        assert [r["author"] for r in data["reviews"]] == ["Cy", "Ann"]

        data = client.get("/v1/reviews", params={"content": "GREAT", "author": "ann"}).json()
        assert [r["author"] for r in data["reviews"]] == ["Ann"]

        response = client.get("/v1/reviews", params={"rating": "99999999999999999999"})
        assert response.status_code == 422
        assert response.json() == {"error": {"rating": "must be an integer value"}}

    def test_review_listing_is_read_only(self, client):
        """Test reviews are created and changed only under their book."""
        response = client.post("/v1/reviews", json={"content": "Great", "author": "Ann", "rating": 5})
        assert response.status_code == 405
        assert client.get("/v1/reviews/1").status_code == 404

    def test_review_rating_must_be_integer(self, client, create_book):
        """Test JSON types are enforced for integer fields."""
        book = create_book()
        response = client.post(f"/v1/books/{book['id']}/reviews",
                               json={"content": "Great", "author": "Ann", "rating": "5"})
        assert response.status_code == 400
        assert response.json() == {"error": 'body contains incorrect JSON type for field "rating"'}


class TestErrors:
    """Tests for routing errors and unexpected failures."""

    def test_unknown_route(self, client):
        """Test unknown paths use the not found envelope."""
        response = client.get("/v1/magazines")
        assert response.status_code == 404
        assert response.json() == {"error": "the requested resource could not be found"}

    def test_method_not_allowed(self, client):
        """Test unsupported methods are reported."""
        response = client.put("/v1/books/1", json={})
        assert response.status_code == 405
        assert response.json() == {"error": "the PUT method is not supported for this resource"}

    def test_unexpected_error_becomes_500(self, app_settings, api_settings):
        """Test unexpected failures respond 500 and close the connection."""
        app = create_app(app_settings, api_settings)

        @app.get("/v1/explode")
        async def explode():
            raise RuntimeError("boom")

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/v1/explode")
            assert response.status_code == 500
            assert response.json() == {
                "error": "the server encountered a problem and could not process your request"
            }
            assert response.headers["Connection"] == "close"

            # the service keeps answering
            assert client.get("/v1/books").status_code == 200

    def test_health_check(self, client):
        """Test health check endpoint."""
        response = client.get("/v1/healthcheck")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "available"
        assert data["system_info"] == {"environment": "testing", "version": "1.0.0"}
        assert data["database_status"] == "healthy"
