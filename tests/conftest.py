import itertools

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache

from medialib.models import Anime, Manga
from medialib.services.feeds import get_feed_backend


@pytest.fixture(autouse=True)
def feed_backend(settings):
    settings.MEDIALIB_FEED_BACKEND = "medialib.services.feeds.MemoryFeedBackend"
    backend = get_feed_backend()
    backend.reset()
    return backend


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def make(**kwargs):
        n = next(counter)
        kwargs.setdefault("username", f"user{n}")
        return get_user_model().objects.create_user(**kwargs)

    return make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture(params=[Anime, Manga], ids=["anime", "manga"])
def media_class(request):
    return request.param


@pytest.fixture
def subject(media_class):
    return media_class(titles={"en_jp": "Cowboy Bebop"}, canonical_title="en_jp")


@pytest.fixture
def anime(db):
    return Anime.objects.create(
        titles={"en_jp": "Shingeki no Kyojin", "en": "Attack on Titan"},
        canonical_title="en_jp",
        episode_count=25,
    )
