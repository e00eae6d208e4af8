from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction

from medialib.services.ratings import RATING_BUCKETS


class LibraryEntry(models.Model):
    """
    Запись пользователя в библиотеке: статус, прогресс и оценка.

    Каждое изменение оценки ровно один раз двигает
    rating_frequencies у связанного тайтла:
      - новая запись с оценкой → +1;
      - смена оценки            → −1 у старой, +1 у новой;
      - оценку убрали / запись удалили → −1.
    """

    STATUS_CURRENT = "current"
    STATUS_PLANNED = "planned"
    STATUS_COMPLETED = "completed"
    STATUS_ON_HOLD = "on_hold"
    STATUS_DROPPED = "dropped"

    STATUS_CHOICES = [
        (STATUS_CURRENT, "Current"),
        (STATUS_PLANNED, "Planned"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_ON_HOLD, "On hold"),
        (STATUS_DROPPED, "Dropped"),
    ]

    id = models.BigAutoField(primary_key=True)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="library_entries",
    )

    media_type = models.ForeignKey(ContentType, on_delete=models.CASCADE)
    media_id = models.PositiveBigIntegerField(db_index=True)
    media = GenericForeignKey("media_type", "media_id")

    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default=STATUS_PLANNED,
    )
    progress = models.PositiveIntegerField(default=0)
    rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[
            MinValueValidator(RATING_BUCKETS[0]),
            MaxValueValidator(RATING_BUCKETS[-1]),
        ],
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "library_entries"
        unique_together = ("user", "media_type", "media_id")
        indexes = [
            models.Index(
                fields=["media_type", "media_id", "rating"],
                name="library_entries_rating_idx",
            ),
        ]

    def __str__(self):
        return f"{self.user_id} → {self.media_type_id}:{self.media_id} ({self.status})"

    def clean(self):
        media = self.media
        limit = media.progress_limit if media is not None else None
        if limit is not None and self.progress > limit:
            raise ValidationError({
                "progress": f"progress {self.progress} exceeds limit {limit}",
            })

    def _locked_stored_rating(self):
        """Оценка, которая сейчас лежит в базе (строка под блокировкой)."""
        if self.pk is None:
            return None
        return (
            LibraryEntry.objects
            .select_for_update()
            .filter(pk=self.pk)
            .values_list("rating", flat=True)
            .first()
        )

    def save(self, *args, **kwargs):
        update_fields = kwargs.get("update_fields")
        with transaction.atomic():
            old_rating = self._locked_stored_rating()
            super().save(*args, **kwargs)

            # rating не пишется в базу, значит журнал не трогаем
            if update_fields is not None and "rating" not in update_fields:
                return
            if self.rating == old_rating:
                return

            media = self.media
            if old_rating is not None:
                media.decrement_rating_frequency(old_rating)
            if self.rating is not None:
                media.increment_rating_frequency(self.rating)

    def delete(self, *args, **kwargs):
        with transaction.atomic():
            old_rating = self._locked_stored_rating()
            if old_rating is not None:
                self.media.decrement_rating_frequency(old_rating)
            return super().delete(*args, **kwargs)
