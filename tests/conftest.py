import pytest

from articlecast.models import UserProfile


@pytest.fixture
def user() -> UserProfile:
    return UserProfile.model_validate(
        {"$id": "user-1", "username": "reader", "email": "reader@example.com", "articlesBookmarked": ["a", "b"]}
    )
