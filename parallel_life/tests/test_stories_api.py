"""
Story API Tests
===============
Generation endpoints and their error bodies, reading, listing, likes,
visibility and deletion.
"""
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from parallel_life.db.models import Comment, Like, Plan, Story, StorySegment, User
from parallel_life.tests.fakes import auth_headers, make_request


def _form(**overrides) -> dict:
    return make_request(**overrides).model_dump()


class TestGenerateEndpoint:

    def test_generate(self, auth_client: TestClient, session: Session, test_user: User):
        response = auth_client.post("/api/stories/generate", json=_form())

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["failed_image_generations"] == []
        assert len(data["story"]["segments"]) == 5
        assert session.get(Story, data["story_id"]) is not None

    def test_requires_login(self, client: TestClient):
        assert client.post("/api/stories/generate", json=_form()).status_code == 401

    def test_missing_field_error_body(self, auth_client: TestClient):
        form = _form()
        del form["career"]

        response = auth_client.post("/api/stories/generate", json=form)

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"
        assert response.json()["retryable"] is False

    def test_quota_error_body(self, auth_client: TestClient, session: Session, test_user: User, fake_llm):
        test_user.usage_count = 5
        session.add(test_user)
        session.commit()

        response = auth_client.post("/api/stories/generate", json=_form())

        assert response.status_code == 403
        assert response.json()["error_code"] == "QUOTA_EXCEEDED"
        assert response.json()["success"] is False
        assert fake_llm.calls == []

    def test_missing_key_is_503(self, auth_client: TestClient, writer):
        writer.api_key = ""

        response = auth_client.post("/api/stories/generate", json=_form())

        assert response.status_code == 503
        assert response.json()["error_code"] == "API_KEY_MISSING"

    def test_regenerate(self, auth_client: TestClient, test_story: Story):
        response = auth_client.post(f"/api/stories/{test_story.id}/regenerate")

        assert response.status_code == 201
        assert response.json()["story_id"] != test_story.id
        assert response.json()["message"].startswith("New story generated successfully")

    def test_regenerate_other_users_story(self, client: TestClient, test_story: Story, other_user: User):
        response = client.post(f"/api/stories/{test_story.id}/regenerate", headers=auth_headers(other_user))

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"


class TestReadStory:

    def test_public_story_anonymous(self, client: TestClient, test_story: Story):
        response = client.get(f"/api/stories/{test_story.id}")

        assert response.status_code == 200
        story = response.json()["story"]
        assert [segment["segment_order"] for segment in story["segments"]] == [1, 2, 3]
        assert story["user"]["nickname"] == "Tester"
        assert story["is_liked"] is False

    def test_views_counted(self, client: TestClient, test_story: Story):
        client.get(f"/api/stories/{test_story.id}")
        response = client.get(f"/api/stories/{test_story.id}")

        assert response.json()["story"]["views_count"] == 2

    def test_missing_story(self, client: TestClient):
        assert client.get("/api/stories/999").status_code == 404

    def test_private_story_hidden_from_others(self, client: TestClient, session: Session, test_story: Story, other_user: User):
        test_story.is_public = False
        session.add(test_story)
        session.commit()

        assert client.get(f"/api/stories/{test_story.id}").status_code == 403
        assert client.get(f"/api/stories/{test_story.id}", headers=auth_headers(other_user)).status_code == 403

    def test_private_story_visible_to_owner(self, auth_client: TestClient, session: Session, test_story: Story):
        test_story.is_public = False
        session.add(test_story)
        session.commit()

        assert auth_client.get(f"/api/stories/{test_story.id}").status_code == 200


class TestListStories:

    def test_public_list(self, client: TestClient, session: Session, test_story: Story, test_user: User):
        session.add(Story(user_id=test_user.id, title="Hidden", summary="s", tone="dark", is_public=False))
        session.commit()

        response = client.get("/api/stories/")

        data = response.json()
        assert [story["title"] for story in data["stories"]] == ["Test Story"]
        assert data["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}
        assert "input_data" not in data["stories"][0]

    def test_filter_by_tone(self, client: TestClient, session: Session, test_story: Story, test_user: User):
        session.add(Story(user_id=test_user.id, title="Funny one", summary="s", tone="funny"))
        session.commit()

        titles = [story["title"] for story in client.get("/api/stories/?tone=funny").json()["stories"]]
        assert titles == ["Funny one"]

    def test_popular_sort(self, client: TestClient, session: Session, test_story: Story, test_user: User):
        session.add(Story(user_id=test_user.id, title="Loved", summary="s", tone="warm", likes_count=10))
        session.commit()

        titles = [story["title"] for story in client.get("/api/stories/?sort=popular").json()["stories"]]
        assert titles[0] == "Loved"

    def test_is_liked_flag(self, auth_client: TestClient, test_story: Story):
        auth_client.post(f"/api/stories/{test_story.id}/like")

        stories = auth_client.get("/api/stories/").json()["stories"]
        assert stories[0]["is_liked"] is True

    def test_my_stories_include_private(self, auth_client: TestClient, session: Session, test_story: Story):
        test_story.is_public = False
        session.add(test_story)
        session.commit()

        data = auth_client.get("/api/stories/user/me").json()
        assert data["pagination"]["total"] == 1

    def test_liked_stories(self, auth_client: TestClient, test_story: Story):
        auth_client.post(f"/api/stories/{test_story.id}/like")

        stories = auth_client.get("/api/stories/liked").json()["stories"]
        assert [story["id"] for story in stories] == [test_story.id]
        assert stories[0]["author_nickname"] == "Tester"


class TestLikes:

    def test_toggle(self, auth_client: TestClient, test_story: Story):
        liked = auth_client.post(f"/api/stories/{test_story.id}/like").json()
        assert liked == {"success": True, "is_liked": True, "likes_count": 1}

        unliked = auth_client.post(f"/api/stories/{test_story.id}/like").json()
        assert unliked == {"success": True, "is_liked": False, "likes_count": 0}

    def test_like_missing_story(self, auth_client: TestClient):
        assert auth_client.post("/api/stories/999/like").status_code == 404

    def test_like_requires_login(self, client: TestClient, test_story: Story):
        assert client.post(f"/api/stories/{test_story.id}/like").status_code == 401


class TestVisibility:

    def test_owner_can_hide(self, auth_client: TestClient, session: Session, test_story: Story):
        response = auth_client.patch(f"/api/stories/{test_story.id}/visibility", json={"is_public": False})

        assert response.json()["is_public"] is False
        session.refresh(test_story)
        assert test_story.is_public is False

    def test_other_user_cannot_change(self, client: TestClient, test_story: Story, other_user: User):
        response = client.patch(
            f"/api/stories/{test_story.id}/visibility",
            json={"is_public": False},
            headers=auth_headers(other_user),
        )
        assert response.status_code == 404


class TestDeleteStory:

    def test_delete_cascades(self, auth_client: TestClient, session: Session, test_story: Story, test_user: User):
        story_id = test_story.id
        auth_client.post(f"/api/stories/{story_id}/like")
        auth_client.post(f"/api/comments/story/{story_id}", json={"content": "Lovely"})

        response = auth_client.delete(f"/api/stories/{story_id}")

        assert response.json() == {"success": True, "message": "Story deleted"}
        session.expire_all()
        assert session.get(Story, story_id) is None
        assert session.exec(select(StorySegment).where(StorySegment.story_id == story_id)).all() == []
        assert session.exec(select(Like).where(Like.story_id == story_id)).all() == []
        assert session.exec(select(Comment).where(Comment.story_id == story_id)).all() == []

    def test_other_user_cannot_delete(self, client: TestClient, session: Session, test_story: Story, other_user: User):
        response = client.delete(f"/api/stories/{test_story.id}", headers=auth_headers(other_user))

        assert response.status_code == 404
        assert session.get(Story, test_story.id) is not None


class TestGenerationRateLimit:
    """Generation and regeneration share one hourly budget per account."""

    def test_eleventh_generation_is_limited(self, auth_client: TestClient, session: Session, test_user: User):
        test_user.plan = Plan.PREMIUM
        session.add(test_user)
        session.commit()

        for _ in range(10):
            assert auth_client.post("/api/stories/generate", json=_form()).status_code == 201

        response = auth_client.post("/api/stories/generate", json=_form())

        assert response.status_code == 429
        assert response.json()["error_code"] == "TOO_MANY_REQUESTS"
        assert response.json()["retryable"] is True

    def test_limit_is_per_account(self, client: TestClient, session: Session, test_user: User, other_user: User):
        for user in (test_user, other_user):
            user.plan = Plan.PREMIUM
            session.add(user)
        session.commit()

        for _ in range(10):
            client.post("/api/stories/generate", json=_form(), headers=auth_headers(test_user))

        assert client.post("/api/stories/generate", json=_form(), headers=auth_headers(test_user)).status_code == 429
        assert client.post("/api/stories/generate", json=_form(), headers=auth_headers(other_user)).status_code == 201

    def test_regenerate_is_limited(self, auth_client: TestClient, test_story: Story):
        for _ in range(10):
            auth_client.post(f"/api/stories/{test_story.id}/regenerate")

        response = auth_client.post(f"/api/stories/{test_story.id}/regenerate")

        assert response.status_code == 429
