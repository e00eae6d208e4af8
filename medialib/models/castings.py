from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models


class Casting(models.Model):
    """
    Участник тайтла: сэйю, режиссёр, автор и т.д.
    media: аниме или манга (generic FK).
    """
    id = models.BigAutoField(primary_key=True)

    media_type = models.ForeignKey(ContentType, on_delete=models.CASCADE)
    media_id = models.PositiveBigIntegerField(db_index=True)
    media = GenericForeignKey("media_type", "media_id")

    person_name = models.CharField(max_length=255)
    character_name = models.CharField(max_length=512, blank=True)

    role = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Voice Actor, Director, Story, Art...",
    )
    language = models.CharField(max_length=32, blank=True)

    voice_actor = models.BooleanField(default=False)
    featured = models.BooleanField(default=False)
    ordering = models.IntegerField(default=0, db_index=True)

    class Meta:
        db_table = "castings"
        indexes = [
            models.Index(fields=["media_type", "media_id"], name="castings_media_idx"),
        ]

    def __str__(self):
        if self.character_name:
            return f"{self.person_name} → {self.character_name}"
        return f"{self.person_name} ({self.role})"
