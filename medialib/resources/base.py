import json
import logging

from django.core.cache import caches
from django.core.serializers.json import DjangoJSONEncoder

logger = logging.getLogger(__name__)


class ResourceError(Exception):
    """Неверно объявленный ресурс или неизвестный фильтр."""


def resource_type(model) -> str:
    """Comment → 'comments', CommentLike → 'commentLikes'."""
    name = model.__name__
    return name[0].lower() + name[1:] + "s"


def _dump(values: dict) -> dict:
    """Даты, Decimal и UUID в JSON-совместимый вид через DjangoJSONEncoder."""
    return json.loads(json.dumps(values, cls=DjangoJSONEncoder))


class BaseResource:
    """
    Декларативное описание API-ресурса поверх модели:

        class CommentResource(BaseResource):
            model = Comment
            caching = True
            attributes = ("content", ...)
            has_one = ("user", "post")
            has_many = ("likes",)
            filters = ("post_id",)

    serialize() отдаёт запись в форме JSON:API
    ({"id", "type", "attributes", "relationships"}).
    """

    model = None
    attributes = ()
    has_one = ()
    has_many = ()
    filters = ()
    caching = False
    cache_timeout = None
    cache_alias = "default"

    def __init__(self):
        if self.model is None:
            raise ResourceError(f"{type(self).__name__}: model is not set")
        if self.caching and not _has_field(self.model, "updated_at"):
            raise ResourceError(
                f"{type(self).__name__}: caching requires an updated_at column"
            )
        self.type = resource_type(self.model)

    @property
    def cache(self):
        return caches[self.cache_alias]

    # ------------------------------------------------------------------
    # Выборка
    # ------------------------------------------------------------------

    def get_queryset(self):
        return self.model._default_manager.all().order_by("pk")

    def records(self, params=None):
        """
        QuerySet, отфильтрованный по объявленным фильтрам.
        'a,b,c' в значении фильтра → __in.
        """
        params = dict(params or {})
        unknown = sorted(set(params) - set(self.filters))
        if unknown:
            raise ResourceError(f"unknown filter(s): {', '.join(unknown)}")

        lookups = {}
        for name, value in params.items():
            if isinstance(value, str) and "," in value:
                lookups[f"{name}__in"] = [v for v in value.split(",") if v]
            else:
                lookups[name] = value

        return self.get_queryset().filter(**lookups)

    # ------------------------------------------------------------------
    # Сериализация
    # ------------------------------------------------------------------

    def cache_key(self, obj) -> str:
        stamp = obj.updated_at.strftime("%Y%m%d%H%M%S%f")
        return f"{self.type}/{obj.pk}-{stamp}"

    def serialize(self, obj) -> dict:
        if not self.caching:
            return self._build(obj)

        key = self.cache_key(obj)
        data = self.cache.get(key)
        if data is None:
            data = self._build(obj)
            self.cache.set(key, data, self.cache_timeout)
        else:
            logger.debug("resource cache hit %s", key)
        return data

    def serialize_many(self, params=None) -> dict:
        return {"data": [self.serialize(obj) for obj in self.records(params)]}

    def _build(self, obj) -> dict:
        attributes = _dump({name: getattr(obj, name) for name in self.attributes})

        relationships = {}
        for name in self.has_one:
            field = obj._meta.get_field(name)
            related_id = getattr(obj, field.attname)
            if related_id is None:
                relationships[name] = {"data": None}
            else:
                relationships[name] = {
                    "data": {
                        "type": resource_type(field.related_model),
                        "id": str(related_id),
                    }
                }

        for name in self.has_many:
            manager = getattr(obj, name)
            rel_type = resource_type(manager.model)
            ids = manager.order_by("pk").values_list("pk", flat=True)
            relationships[name] = {
                "data": [{"type": rel_type, "id": str(pk)} for pk in ids]
            }

        return {
            "id": str(obj.pk),
            "type": self.type,
            "attributes": attributes,
            "relationships": relationships,
        }


def _has_field(model, name) -> bool:
    return any(f.name == name for f in model._meta.get_fields())
