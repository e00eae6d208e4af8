import logging

from django.contrib.contenttypes.fields import GenericRelation
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator
from django.db import models, transaction
from django.db.models import Count
from django.utils import timezone
from django.utils.text import slugify

from medialib.services.feeds import Feed
from medialib.services.ratings import (
    RATING_BUCKETS,
    bucket_key,
    default_rating_frequencies,
)

logger = logging.getLogger(__name__)


def validate_average_rating(value):
    # 0 не рейтинг: нижняя граница строгая
    if value is not None and value <= 0:
        raise ValidationError(
            "%(value)s must be greater than 0",
            params={"value": value},
            code="min_value",
        )


class Genre(models.Model):
    """
    Справочник жанров:
    Action, Drama, Comedy, Slice of Life...
    """
    name = models.CharField(max_length=64, unique=True)
    slug = models.SlugField(max_length=64, unique=True)

    class Meta:
        db_table = "genres"

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name


class Media(models.Model):
    """
    Общая часть аниме/манги.

    Кроме колонок, здесь живут:
    - журнал частот оценок (rating_frequencies: bucket → count);
    - пять производных фидов и их связка при создании записи;
    - генерация slug из канонического названия.
    """

    slug = models.SlugField(max_length=255, unique=True, blank=True)

    titles = models.JSONField(
        default=dict,
        blank=True,
        help_text="locale → title, например {'en_jp': 'Shingeki no Kyojin'}",
    )
    canonical_title = models.CharField(max_length=32, default="en_jp")
    abbreviated_titles = models.JSONField(default=list, blank=True)

    average_rating = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[validate_average_rating, MaxValueValidator(100)],
    )
    rating_frequencies = models.JSONField(
        default=default_rating_frequencies,
        blank=True,
        help_text="bucket (2..20) → количество оценок",
    )

    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)

    genres = models.ManyToManyField(
        Genre,
        related_name="%(class)s_set",
        blank=True,
    )
    castings = GenericRelation(
        "medialib.Casting",
        content_type_field="media_type",
        object_id_field="media_id",
    )
    library_entries = GenericRelation(
        "medialib.LibraryEntry",
        content_type_field="media_type",
        object_id_field="media_id",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def __str__(self):
        return self.canonical_title_text or self.slug

    # ------------------------------------------------------------------
    # Названия и slug
    # ------------------------------------------------------------------

    @property
    def canonical_title_text(self) -> str:
        titles = self.titles or {}
        if self.canonical_title in titles:
            return titles[self.canonical_title]
        return next(iter(titles.values()), "")

    @property
    def year(self):
        if self.start_date is None:
            return None
        return self.start_date.year

    @property
    def progress_limit(self):
        """Максимальный progress для записи в библиотеке (None, если лимита нет)."""
        return None

    def slug_candidates(self):
        title = self.canonical_title_text
        candidates = [title]
        if self.year:
            candidates.append(f"{title} {self.year}")
        return candidates

    def _free_slug(self) -> str:
        model = type(self)
        taken = model.objects.exclude(pk=self.pk)

        slugs = [slugify(c) for c in self.slug_candidates() if c]
        slugs = [s for s in slugs if s]
        if not slugs:
            slugs = [model.__name__.lower()]

        for slug in slugs:
            if not taken.filter(slug=slug).exists():
                return slug

        base = slugs[0]
        n = 2
        while taken.filter(slug=f"{base}-{n}").exists():
            n += 1
        return f"{base}-{n}"

    # ------------------------------------------------------------------
    # Даты
    # ------------------------------------------------------------------

    def run_length(self):
        """
        Длительность выхода: end_date − start_date.

        Без end_date считаем до сегодняшнего дня,
        без start_date возвращает None.
        """
        if self.start_date is None:
            return None
        end = self.end_date or timezone.localdate()
        return end - self.start_date

    # ------------------------------------------------------------------
    # Журнал частот оценок
    # ------------------------------------------------------------------

    def calculate_rating_frequencies(self):
        """
        Пересчитывает частоты по library_entries одним GROUP BY.
        Ничего не сохраняет; все бакеты присутствуют, по умолчанию 0.
        """
        freqs = {bucket: 0 for bucket in RATING_BUCKETS}
        rows = (
            self.library_entries
            .exclude(rating__isnull=True)
            .values("rating")
            .annotate(n=Count("id"))
            .order_by()
        )
        for row in rows:
            freqs[row["rating"]] = row["n"]
        return freqs

    def rating_frequency(self, bucket) -> int:
        return int((self.rating_frequencies or {}).get(bucket_key(bucket), 0))

    def increment_rating_frequency(self, bucket):
        self._shift_rating_frequency(bucket, 1)

    def decrement_rating_frequency(self, bucket):
        self._shift_rating_frequency(bucket, -1)

    def _shift_rating_frequency(self, bucket, delta: int):
        key = bucket_key(bucket)
        model = type(self)

        with transaction.atomic():
            locked = (
                model.objects
                .select_for_update()
                .only("id", "rating_frequencies")
                .get(pk=self.pk)
            )
            freqs = dict(locked.rating_frequencies or {})
            # ниже нуля не опускаемся
            freqs[key] = max(int(freqs.get(key, 0)) + delta, 0)
            now = timezone.now()
            model.objects.filter(pk=self.pk).update(
                rating_frequencies=freqs,
                updated_at=now,
            )

        self.rating_frequencies = freqs
        self.updated_at = now

    # ------------------------------------------------------------------
    # Фиды
    # ------------------------------------------------------------------

    @property
    def posts_feed(self) -> Feed:
        return Feed.media_posts(type(self), self.pk)

    @property
    def media_feed(self) -> Feed:
        return Feed.media_media(type(self), self.pk)

    @property
    def aggregated_feed(self) -> Feed:
        return Feed.media_aggr(type(self), self.pk)

    @property
    def posts_aggregated_feed(self) -> Feed:
        return Feed.media_posts_aggr(type(self), self.pk)

    @property
    def media_aggregated_feed(self) -> Feed:
        return Feed.media_media_aggr(type(self), self.pk)

    def setup_feeds(self):
        aggregated = self.aggregated_feed
        aggregated.follow(self.posts_feed)
        aggregated.follow(self.media_feed)
        self.posts_aggregated_feed.follow(self.posts_feed)
        self.media_aggregated_feed.follow(self.media_feed)
        logger.debug("feeds wired for %s-%s", type(self).__name__, self.pk)

    def save(self, *args, **kwargs):
        created = self._state.adding
        initial_pk = self.pk
        if not self.slug:
            self.slug = self._free_slug()

        # строка и все четыре ребра фидов появляются вместе или никак
        try:
            with transaction.atomic():
                super().save(*args, **kwargs)
                if created:
                    self.setup_feeds()
        except Exception:
            if created:
                self._state.adding = True
                self.pk = initial_pk
            raise


class Anime(Media):
    episode_count = models.PositiveIntegerField(null=True, blank=True)
    episode_length = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="minutes",
    )
    age_rating = models.CharField(max_length=8, blank=True)

    class Meta:
        db_table = "anime"

    @property
    def progress_limit(self):
        return self.episode_count


class Manga(Media):
    chapter_count = models.PositiveIntegerField(null=True, blank=True)
    volume_count = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        db_table = "manga"

    @property
    def progress_limit(self):
        return self.chapter_count
