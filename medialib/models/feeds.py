from django.db import models


class FeedFollow(models.Model):
    """
    НАПРАВЛЕННАЯ связь между двумя фидами:
    source следует за target (получает его события).

    Создаётся один раз при создании тайтла, повторно не перевязывается.
    """

    source_group = models.CharField(max_length=32)
    source_id = models.CharField(max_length=128)

    target_group = models.CharField(max_length=32)
    target_id = models.CharField(max_length=128)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "feed_follows"
        unique_together = ("source_group", "source_id", "target_group", "target_id")
        indexes = [
            models.Index(fields=["source_group", "source_id"], name="feed_follows_source_idx"),
            models.Index(fields=["target_group", "target_id"], name="feed_follows_target_idx"),
        ]

    def __str__(self):
        return f"{self.source_group}:{self.source_id} → {self.target_group}:{self.target_id}"
