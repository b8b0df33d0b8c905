"""
HTTP surface: feed, sidebar, preferences, social graph and view tracking.
"""
import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from network32.models import Follow
from network32.routers import content
from network32.schemas import FeedPreferences


class TestFeedEndpoint:

    async def test_feed_returns_hydrated_items(self, client, data):
        await data.user("alice", profile_photo_url="avatars/alice.jpg")
        await data.case("c1", "alice", minutes=1)

        r = await client.get("/feed/", params={"user_id": "viewer", "filter": "cases"})

        assert r.status_code == 200, r.text
        body = r.json()
        assert body["filter"] == "cases"
        assert body["sort"] == "latest"
        [item] = body["items"]
        assert item["id"] == "case-c1"
        assert item["type"] == "case"
        assert item["payload"]["before_image_url"] == "https://media.test/cases/c1/before.jpg"
        assert item["payload"]["author"]["profile_photo_url"] == "https://media.test/avatars/alice.jpg"

    async def test_trending_sort(self, client, data):
        await data.user("alice")
        await data.case("c1", "alice", minutes=1, views=10, saves=5)
        await data.thread("t1", "alice", minutes=2, views=3, replies=1)

        r = await client.get("/feed/", params={"user_id": "viewer", "sort": "trending"})

        ids = [i["id"] for i in r.json()["items"]]
        assert ids[:2] == ["case-c1", "thread-t1"]

    async def test_empty_network_is_distinguishable(self, client, data):
        await data.user("viewer")
        await data.user("alice")
        await data.case("c1", "alice")

        r = await client.get("/feed/", params={"user_id": "viewer", "sort": "my_network"})

        body = r.json()
        assert r.status_code == 200
        assert body["items"] == []
        assert body["network_scoped"] is True
        assert body["network_size"] == 0

    async def test_bad_query_parameters_are_rejected(self, client):
        for params in (
            {"user_id": "viewer", "limit": -1},
            {"user_id": "viewer", "offset": -1},
            {"user_id": "viewer", "filter": "videos"},
            {"user_id": "viewer", "sort": "hot"},
            {},
        ):
            r = await client.get("/feed/", params=params)
            assert r.status_code == 422, params

    async def test_single_type_store_failure_is_502(self, client, repository, monkeypatch):
        async def boom(*args):
            raise ConnectionError("store unavailable")

        monkeypatch.setattr(repository, "fetch_cases", boom)

        r = await client.get("/feed/", params={"user_id": "viewer", "filter": "cases"})

        assert r.status_code == 502
        assert r.json()["failed_types"] == ["case"]

    async def test_saved_preferences_apply(self, client, data, preferences_store):
        await data.user("alice")
        await data.case("c1", "alice")
        await data.thread("t1", "alice")
        preferences_store["viewer"] = FeedPreferences(
            show_cases=False, show_professionals=False
        )

        r = await client.get("/feed/", params={"user_id": "viewer"})

        assert [i["id"] for i in r.json()["items"]] == ["thread-t1"]


class TestSidebarEndpoints:

    async def test_sidebar(self, client, data):
        await data.user("viewer")
        await data.user("alice")
        await data.case("c1", "alice", procedure_type="implants")
        await data.thread("t1", "alice")
        await data.clinic("k1", "alice", logo_url="logos/k1.png")

        r = await client.get("/feed/sidebar", params={"user_id": "viewer"})

        assert r.status_code == 200
        body = r.json()
        assert [p["id"] for p in body["suggested_professionals"]] == ["alice"]
        assert [t["id"] for t in body["active_discussions"]] == ["t1"]
        assert body["recent_clinics"][0]["logo_url"] == "https://media.test/logos/k1.png"
        assert body["failed"] == []

    async def test_individual_aggregates(self, client, data):
        await data.user("viewer")
        await data.user("alice")
        await data.thread("t1", "alice")
        await data.clinic("k1", "alice")

        suggested = await client.get("/feed/suggested", params={"user_id": "viewer", "limit": 3})
        discussions = await client.get("/feed/active-discussions")
        clinics = await client.get("/feed/recent-clinics")
        procedures = await client.get("/feed/trending-procedures")

        assert [p["id"] for p in suggested.json()] == ["alice"]
        assert [t["id"] for t in discussions.json()] == ["t1"]
        assert [c["id"] for c in clinics.json()] == ["k1"]
        assert procedures.status_code == 200


class TestFeedSettings:

    async def test_defaults_then_round_trip(self, client):
        r = await client.get("/feed/settings/viewer")
        assert r.json()["show_cases"] is True
        assert r.json()["show_network_only"] is False

        new = {"show_clinics": False, "show_network_only": True, "selected_specialties": ["endodontics"]}
        r = await client.put("/feed/settings/viewer", json=new)
        assert r.status_code == 200

        saved = (await client.get("/feed/settings/viewer")).json()
        assert saved["show_clinics"] is False
        assert saved["show_network_only"] is True
        assert saved["selected_specialties"] == ["endodontics"]


class TestSocialGraph:

    async def test_follow_unfollow_flow(self, client, data):
        await data.user("viewer")
        await data.user("alice")
        await data.case("c1", "alice")

        r = await client.post("/users/follow", json={"follower_id": "viewer", "following_id": "alice"})
        assert r.status_code == 204
        # idempotent
        r = await client.post("/users/follow", json={"follower_id": "viewer", "following_id": "alice"})
        assert r.status_code == 204

        following = (await client.get("/users/viewer/following")).json()
        assert following["following"] == ["alice"]
        followers = (await client.get("/users/alice/followers")).json()
        assert followers["followers"] == ["viewer"]
        edge = (await client.get("/users/viewer/is-following/alice")).json()
        assert edge["following"] is True

        stats = (await client.get("/users/alice/stats")).json()
        assert stats == {"user_id": "alice", "follower_count": 1, "following_count": 0, "case_count": 1}

        feed = (await client.get("/feed/", params={"user_id": "viewer", "sort": "my_network"})).json()
        assert "case-c1" in [i["id"] for i in feed["items"]]

        r = await client.post("/users/unfollow", json={"follower_id": "viewer", "following_id": "alice"})
        assert r.status_code == 204
        edge = (await client.get("/users/viewer/is-following/alice")).json()
        assert edge["following"] is False

    async def test_follow_racing_an_existing_edge(self, client, data, monkeypatch):
        """The edge lookup misses, but the row is already there at insert time."""
        await data.user("viewer")
        await data.user("alice")
        await data.follow("viewer", "alice")

        real_get = AsyncSession.get

        async def stale_get(self, entity, ident, **kw):
            if entity is Follow:
                return None
            return await real_get(self, entity, ident, **kw)

        monkeypatch.setattr(AsyncSession, "get", stale_get)

        r = await client.post("/users/follow", json={"follower_id": "viewer", "following_id": "alice"})

        assert r.status_code == 204
        followers = (await client.get("/users/alice/followers")).json()
        assert followers["followers"] == ["viewer"]

    async def test_cannot_follow_self(self, client, data):
        await data.user("viewer")
        r = await client.post("/users/follow", json={"follower_id": "viewer", "following_id": "viewer"})
        assert r.status_code == 400

    async def test_follow_unknown_user(self, client, data):
        await data.user("viewer")
        r = await client.post("/users/follow", json={"follower_id": "viewer", "following_id": "ghost"})
        assert r.status_code == 404

    async def test_get_user(self, client, data):
        await data.user("alice", specialty="orthodontics")
        r = await client.get("/users/alice")
        assert r.status_code == 200
        assert r.json()["specialty"] == "orthodontics"
        assert (await client.get("/users/ghost")).status_code == 404


class TestViewTracking:

    async def test_view_is_accepted_and_counted(self, client, data, repository):
        await data.user("alice")
        await data.case("c1", "alice", views=2)

        r = await client.post("/content/cases/c1/view")
        assert r.status_code == 202
        await asyncio.gather(*list(content._pending))

        [case] = await repository.fetch_cases(None, 10)
        assert case.views_count == 3

    async def test_view_of_missing_thread_is_still_accepted(self, client):
        r = await client.post("/content/threads/ghost/view")
        assert r.status_code == 202
        await asyncio.gather(*list(content._pending))


async def test_health(client):
    r = await client.get("/health")
    assert r.json()["status"] == "ok"
