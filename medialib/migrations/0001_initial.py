import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import medialib.models.media
import medialib.services.ratings


def _media_fields():
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("slug", models.SlugField(blank=True, max_length=255, unique=True)),
        ("titles", models.JSONField(blank=True, default=dict, help_text="locale → title, например {'en_jp': 'Shingeki no Kyojin'}")),
        ("canonical_title", models.CharField(default="en_jp", max_length=32)),
        ("abbreviated_titles", models.JSONField(blank=True, default=list)),
        ("average_rating", models.DecimalField(
            blank=True,
            decimal_places=2,
            max_digits=5,
            null=True,
            validators=[
                medialib.models.media.validate_average_rating,
                django.core.validators.MaxValueValidator(100),
            ],
        )),
        ("rating_frequencies", models.JSONField(
            blank=True,
            default=medialib.services.ratings.default_rating_frequencies,
            help_text="bucket (2..20) → количество оценок",
        )),
        ("start_date", models.DateField(blank=True, null=True)),
        ("end_date", models.DateField(blank=True, null=True)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contenttypes", "0002_remove_content_type_name"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Genre",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=64, unique=True)),
                ("slug", models.SlugField(max_length=64, unique=True)),
            ],
            options={
                "db_table": "genres",
            },
        ),
        migrations.CreateModel(
            name="Anime",
            fields=_media_fields() + [
                ("episode_count", models.PositiveIntegerField(blank=True, null=True)),
                ("episode_length", models.PositiveIntegerField(blank=True, help_text="minutes", null=True)),
                ("age_rating", models.CharField(blank=True, max_length=8)),
                ("genres", models.ManyToManyField(blank=True, related_name="%(class)s_set", to="medialib.genre")),
            ],
            options={
                "db_table": "anime",
            },
        ),
        migrations.CreateModel(
            name="Manga",
            fields=_media_fields() + [
                ("chapter_count", models.PositiveIntegerField(blank=True, null=True)),
                ("volume_count", models.PositiveIntegerField(blank=True, null=True)),
                ("genres", models.ManyToManyField(blank=True, related_name="%(class)s_set", to="medialib.genre")),
            ],
            options={
                "db_table": "manga",
            },
        ),
        migrations.CreateModel(
            name="Casting",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("media_id", models.PositiveBigIntegerField(db_index=True)),
                ("person_name", models.CharField(max_length=255)),
                ("character_name", models.CharField(blank=True, max_length=512)),
                ("role", models.CharField(db_index=True, help_text="Voice Actor, Director, Story, Art...", max_length=64)),
                ("language", models.CharField(blank=True, max_length=32)),
                ("voice_actor", models.BooleanField(default=False)),
                ("featured", models.BooleanField(default=False)),
                ("ordering", models.IntegerField(db_index=True, default=0)),
                ("media_type", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="contenttypes.contenttype")),
            ],
            options={
                "db_table": "castings",
                "indexes": [models.Index(fields=["media_type", "media_id"], name="castings_media_idx")],
            },
        ),
        migrations.CreateModel(
            name="LibraryEntry",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("media_id", models.PositiveBigIntegerField(db_index=True)),
                ("status", models.CharField(
                    choices=[
                        ("current", "Current"),
                        ("planned", "Planned"),
                        ("completed", "Completed"),
                        ("on_hold", "On hold"),
                        ("dropped", "Dropped"),
                    ],
                    default="planned",
                    max_length=16,
                )),
                ("progress", models.PositiveIntegerField(default=0)),
                ("rating", models.PositiveSmallIntegerField(
                    blank=True,
                    null=True,
                    validators=[
                        django.core.validators.MinValueValidator(2),
                        django.core.validators.MaxValueValidator(20),
                    ],
                )),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("media_type", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="contenttypes.contenttype")),
                ("user", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="library_entries",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "db_table": "library_entries",
                "indexes": [models.Index(fields=["media_type", "media_id", "rating"], name="library_entries_rating_idx")],
                "unique_together": {("user", "media_type", "media_id")},
            },
        ),
        migrations.CreateModel(
            name="Post",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("content", models.TextField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="posts",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "db_table": "posts",
            },
        ),
        migrations.CreateModel(
            name="Comment",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("content", models.TextField()),
                ("content_formatted", models.TextField(blank=True)),
                ("blocked", models.BooleanField(default=False)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("edited_at", models.DateTimeField(blank=True, null=True)),
                ("likes_count", models.IntegerField(default=0)),
                ("replies_count", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("parent", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="replies",
                    to="medialib.comment",
                )),
                ("post", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="comments",
                    to="medialib.post",
                )),
                ("user", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="comments",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "db_table": "comments",
            },
        ),
        migrations.CreateModel(
            name="CommentLike",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("comment", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="likes",
                    to="medialib.comment",
                )),
                ("user", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="comment_likes",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "db_table": "comment_likes",
                "unique_together": {("user", "comment")},
            },
        ),
        migrations.CreateModel(
            name="FeedFollow",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("source_group", models.CharField(max_length=32)),
                ("source_id", models.CharField(max_length=128)),
                ("target_group", models.CharField(max_length=32)),
                ("target_id", models.CharField(max_length=128)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "feed_follows",
                "indexes": [
                    models.Index(fields=["source_group", "source_id"], name="feed_follows_source_idx"),
                    models.Index(fields=["target_group", "target_id"], name="feed_follows_target_idx"),
                ],
                "unique_together": {("source_group", "source_id", "target_group", "target_id")},
            },
        ),
    ]
