import io

from bson import ObjectId

from movie_api.write_queue.models import IntentStatus

MOVIE = {
    "title": "Blade Runner",
    "description": "Replicants on the run",
    "rating": "8.1",
    "releaseDate": "1982-06-25",
    "duration": "117",
    "genre": "Sci-Fi",
    "director": "Ridley Scott",
    "cast": '["Harrison Ford", "Rutger Hauer"]',
    "image": "http://cdn.example.com/blade-runner.jpg",
}


def seed_movies(database, count):
    ids = []
    for n in range(count):
        ids.append(database["movies"].insert_one({
            "title": f"Movie {n}",
            "description": "plot",
            "rating": float(n),
            "duration": 90 + n,
            "image": "",
        }).inserted_id)
    return ids


class TestReads:
    def test_list_is_paginated(self, client, database):
        seed_movies(database, 10)

        response = client.get("/api/movies/list?page=2&limit=4")

        body = response.get_json()
        assert response.status_code == 200
        assert len(body["data"]) == 4
        assert body["pagination"] == {"page": 2, "limit": 4, "total": 10, "pages": 3}

    def test_missing_poster_gets_placeholder(self, client, database):
        seed_movies(database, 1)

        movie = client.get("/api/movies/list").get_json()["data"][0]

        assert movie["image"].startswith("https://ui-avatars.com/api/")
        assert isinstance(movie["_id"], str)

    def test_sorted_by_rating_desc(self, client, database):
        seed_movies(database, 3)

        body = client.get("/api/movies/sorted?sortBy=rating&order=desc").get_json()

        assert [m["rating"] for m in body["data"]] == [2.0, 1.0, 0.0]

    def test_search_requires_query(self, client):
        response = client.get("/api/movies/search")

        assert response.status_code == 400
        assert response.get_json()["message"] == "Search query is required"

    def test_search_matches_title_case_insensitive(self, client, database):
        seed_movies(database, 3)

        body = client.get("/api/movies/search", query_string={"query": "movie 1"}).get_json()

        assert [m["title"] for m in body["data"]] == ["Movie 1"]

    def test_get_movie(self, client, database):
        movie_id = seed_movies(database, 1)[0]

        body = client.get(f"/api/movies/{movie_id}").get_json()

        assert body["data"]["title"] == "Movie 0"

    def test_get_unknown_movie(self, client):
        assert client.get(f"/api/movies/{ObjectId()}").status_code == 404
        assert client.get("/api/movies/not-an-id").status_code == 404

    def test_cached_list_is_served_from_redis(self, client, redis_client):
        redis_client.get.return_value = b'{"success": true, "data": [{"title": "cached"}]}'

        body = client.get("/api/movies/list").get_json()

        assert body["data"] == [{"title": "cached"}]


class TestMutationsAreQueued:
    def test_add_movie_is_accepted_before_apply(self, client, admin_headers, database, services):
        response = client.post("/api/movies/add", json=MOVIE, headers=admin_headers)

        body = response.get_json()
        assert response.status_code == 201
        assert body["intentId"]
        assert database["movies"].count_documents({}) == 0
        intent = services.queue_store.get(body["intentId"])
        assert intent.status is IntentStatus.PENDING
        assert intent.payload.record["cast"] == ["Harrison Ford", "Rutger Hauer"]
        assert intent.payload.record["rating"] == 8.1
        assert intent.payload.record["release_date"] == "1982-06-25"

    def test_added_movie_visible_after_processing(self, client, admin_headers, admin_id, services):
        client.post("/api/movies/add", json=MOVIE, headers=admin_headers)

        services.scheduler.run_once()

        body = client.get("/api/movies/list").get_json()
        assert [m["title"] for m in body["data"]] == ["Blade Runner"]
        assert body["data"][0]["created_by"] == str(admin_id)

    def test_add_movie_invalidates_cache_on_apply(self, client, admin_headers, services, redis_client):
        redis_client.scan_iter.return_value = iter([b"movies:list:1:8"])
        client.post("/api/movies/add", json=MOVIE, headers=admin_headers)
        redis_client.delete.assert_not_called()

        services.scheduler.run_once()

        redis_client.delete.assert_called_with(b"movies:list:1:8")

    def test_add_movie_requires_poster(self, client, admin_headers):
        payload = {key: value for key, value in MOVIE.items() if key != "image"}

        response = client.post("/api/movies/add", json=payload, headers=admin_headers)

        assert response.status_code == 400
        assert response.get_json()["message"] == "Movie poster is required"

    def test_add_movie_rejects_bad_rating(self, client, admin_headers, services):
        response = client.post("/api/movies/add", json={**MOVIE, "rating": "eleven"}, headers=admin_headers)

        assert response.status_code == 400
        assert services.queue_store.count({}) == 0

    def test_add_movie_with_uploaded_images(self, client, admin_headers, services, app):
        data = dict(MOVIE)
        data.pop("image")
        data["image"] = (io.BytesIO(b"poster-bytes"), "Blade Runner.JPG")
        data["sceneImages"] = [(io.BytesIO(b"scene"), f"scene{n}.png") for n in range(2)]

        response = client.post("/api/movies/add", data=data, headers=admin_headers,
                               content_type="multipart/form-data")

        assert response.status_code == 201
        record = services.queue_store.get(response.get_json()["intentId"]).payload.record
        assert record["image"].startswith("http://testserver/images/Blade-Runner_")
        assert record["image"].endswith(".jpg")
        assert len(record["scene_images"]) == 2
        filename = record["image"].rsplit("/", 1)[1]
        assert client.get(f"/images/{filename}").data == b"poster-bytes"

    def test_too_many_scene_images(self, client, admin_headers):
        data = dict(MOVIE)
        data["sceneImages"] = [(io.BytesIO(b"scene"), f"scene{n}.png") for n in range(7)]

        response = client.post("/api/movies/add", data=data, headers=admin_headers,
                               content_type="multipart/form-data")

        assert response.status_code == 400
        assert "Maximum 6" in response.get_json()["message"]

    def test_update_movie(self, client, admin_headers, database, services):
        movie_id = seed_movies(database, 1)[0]

        response = client.put(f"/api/movies/{movie_id}", json={"title": "Renamed"}, headers=admin_headers)

        assert response.status_code == 200
        intent = services.queue_store.get(response.get_json()["intentId"])
        assert intent.payload.target_id == str(movie_id)
        assert intent.payload.changes == {"title": "Renamed"}
        services.scheduler.run_once()
        assert database["movies"].find_one({"_id": movie_id})["title"] == "Renamed"

    def test_update_unknown_movie(self, client, admin_headers):
        response = client.put(f"/api/movies/{ObjectId()}", json={"title": "X"}, headers=admin_headers)

        assert response.status_code == 404

    def test_update_without_changes(self, client, admin_headers, database):
        movie_id = seed_movies(database, 1)[0]

        response = client.put(f"/api/movies/{movie_id}", json={}, headers=admin_headers)

        assert response.status_code == 400

    def test_delete_twice_both_complete(self, client, admin_headers, database, services):
        movie_id = seed_movies(database, 1)[0]

        first = client.delete(f"/api/movies/{movie_id}", headers=admin_headers).get_json()["intentId"]
        second = client.delete(f"/api/movies/{movie_id}", headers=admin_headers).get_json()["intentId"]
        services.scheduler.run_once()

        assert database["movies"].count_documents({}) == 0
        assert services.queue_store.get(first).status is IntentStatus.COMPLETED
        assert services.queue_store.get(second).status is IntentStatus.COMPLETED


class TestAccessControl:
    def test_mutation_requires_token(self, client):
        response = client.post("/api/movies/add", json=MOVIE)

        assert response.status_code == 401
        assert response.get_json()["message"] == "Not Authorized, Login Required"

    def test_invalid_token(self, client):
        response = client.delete(f"/api/movies/{ObjectId()}", headers={"token": "garbage"})

        assert response.status_code == 401
        assert response.get_json()["message"] == "Invalid Token"

    def test_non_admin_forbidden(self, client, user_headers):
        response = client.delete(f"/api/movies/{ObjectId()}", headers=user_headers)

        assert response.status_code == 403
