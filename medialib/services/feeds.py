# medialib/services/feeds.py

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

DEFAULT_FEED_BACKEND = "medialib.services.feeds.DatabaseFeedBackend"

# Группы фидов тайтла
MEDIA_POSTS = "media_posts"
MEDIA_MEDIA = "media_media"
MEDIA_AGGR = "media_aggr"
MEDIA_POSTS_AGGR = "media_posts_aggr"
MEDIA_MEDIA_AGGR = "media_media_aggr"


def _media_feed_id(model, pk) -> str:
    """'Anime-42': одинаково для класса модели и для строки с её именем."""
    name = model if isinstance(model, str) else model.__name__
    return f"{name}-{pk}"


@dataclass(frozen=True)
class Feed:
    """
    Ссылка на фид: (group, id).

    Сам фид живёт во внешнем сервисе; здесь только идентичность
    и follow/unfollow через настроенный бэкенд.
    """

    group: str
    id: str

    @classmethod
    def media_posts(cls, model, pk) -> "Feed":
        return cls(MEDIA_POSTS, _media_feed_id(model, pk))

    @classmethod
    def media_media(cls, model, pk) -> "Feed":
        return cls(MEDIA_MEDIA, _media_feed_id(model, pk))

    @classmethod
    def media_aggr(cls, model, pk) -> "Feed":
        return cls(MEDIA_AGGR, _media_feed_id(model, pk))

    @classmethod
    def media_posts_aggr(cls, model, pk) -> "Feed":
        return cls(MEDIA_POSTS_AGGR, _media_feed_id(model, pk))

    @classmethod
    def media_media_aggr(cls, model, pk) -> "Feed":
        return cls(MEDIA_MEDIA_AGGR, _media_feed_id(model, pk))

    def follow(self, target: "Feed"):
        get_feed_backend().follow(self, target)

    def unfollow(self, target: "Feed"):
        get_feed_backend().unfollow(self, target)

    def __str__(self):
        return f"{self.group}:{self.id}"


# ---------------------------------------------------------------------------
# БЭКЕНДЫ
# ---------------------------------------------------------------------------

class DatabaseFeedBackend:
    """Хранит рёбра в таблице feed_follows. Повторный follow ничего не делает."""

    def follow(self, source: Feed, target: Feed):
        from medialib.models import FeedFollow  # models импортирует Feed

        _, created = FeedFollow.objects.get_or_create(
            source_group=source.group,
            source_id=source.id,
            target_group=target.group,
            target_id=target.id,
        )
        if created:
            logger.debug("follow %s → %s", source, target)

    def unfollow(self, source: Feed, target: Feed):
        from medialib.models import FeedFollow

        FeedFollow.objects.filter(
            source_group=source.group,
            source_id=source.id,
            target_group=target.group,
            target_id=target.id,
        ).delete()
        logger.debug("unfollow %s → %s", source, target)

    def following(self, source: Feed) -> List[Feed]:
        from medialib.models import FeedFollow

        rows = (
            FeedFollow.objects
            .filter(source_group=source.group, source_id=source.id)
            .order_by("id")
            .values_list("target_group", "target_id")
        )
        return [Feed(group, feed_id) for group, feed_id in rows]


class MemoryFeedBackend:
    """Запоминает вызовы в памяти процесса. Для тестов и локального запуска."""

    def __init__(self):
        self.calls: List[Tuple[str, Feed, Feed]] = []

    def follow(self, source: Feed, target: Feed):
        self.calls.append(("follow", source, target))

    def unfollow(self, source: Feed, target: Feed):
        self.calls.append(("unfollow", source, target))

    def following(self, source: Feed) -> List[Feed]:
        edges: List[Feed] = []
        for action, src, target in self.calls:
            if src != source:
                continue
            if action == "follow" and target not in edges:
                edges.append(target)
            elif action == "unfollow" and target in edges:
                edges.remove(target)
        return edges

    def reset(self):
        self.calls.clear()


@lru_cache(maxsize=None)
def _load_backend(path: str):
    try:
        backend_cls = import_string(path)
    except ImportError as exc:
        raise ImproperlyConfigured(
            f"MEDIALIB_FEED_BACKEND: не удалось импортировать {path!r}"
        ) from exc
    return backend_cls()


def get_feed_backend():
    """Бэкенд из settings.MEDIALIB_FEED_BACKEND; один экземпляр на путь."""
    path = getattr(settings, "MEDIALIB_FEED_BACKEND", DEFAULT_FEED_BACKEND)
    return _load_backend(path)
