import datetime
from decimal import Decimal

import pytest
from django.contrib.contenttypes.fields import GenericRelation
from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.utils import timezone

from medialib.models import Anime, Genre, LibraryEntry, Manga
from medialib.services.feeds import Feed, MemoryFeedBackend, get_feed_backend
from medialib.services.ratings import RATING_BUCKETS


def days_ago(n):
    return timezone.localdate() - datetime.timedelta(days=n)


class FlakyFeedBackend(MemoryFeedBackend):
    """Падает на третьем follow, как get_or_create при гонке."""

    def follow(self, source, target):
        if len(self.calls) == 2:
            raise IntegrityError("duplicate key value violates unique constraint")
        super().follow(source, target)


class TestColumns:
    @pytest.mark.parametrize(
        "name, internal_type",
        [
            ("slug", "SlugField"),
            ("abbreviated_titles", "JSONField"),
            ("average_rating", "DecimalField"),
            ("rating_frequencies", "JSONField"),
            ("start_date", "DateField"),
            ("end_date", "DateField"),
        ],
    )
    def test_has_column(self, media_class, name, internal_type):
        assert media_class._meta.get_field(name).get_internal_type() == internal_type

    def test_has_and_belongs_to_many_genres(self, media_class):
        field = media_class._meta.get_field("genres")
        assert field.many_to_many
        assert field.related_model is Genre

    @pytest.mark.parametrize("name", ["castings", "library_entries"])
    def test_has_many(self, media_class, name):
        assert isinstance(media_class._meta.get_field(name), GenericRelation)

    def test_responds_to_slug_candidates_and_progress_limit(self, subject):
        assert callable(subject.slug_candidates)
        assert hasattr(subject, "progress_limit")


class TestYear:
    def test_year_comes_from_start_date(self, subject):
        subject.start_date = datetime.date(1998, 4, 3)
        assert subject.year == 1998

    def test_year_without_start_date(self, subject):
        subject.start_date = None
        assert subject.year is None


@pytest.mark.django_db
class TestAverageRatingValidation:
    @pytest.mark.parametrize("value", [Decimal("0"), Decimal("-1"), Decimal("100.01")])
    def test_rejects_out_of_range(self, subject, value):
        subject.average_rating = value
        with pytest.raises(ValidationError) as exc:
            subject.full_clean()
        assert "average_rating" in exc.value.message_dict

    @pytest.mark.parametrize("value", [Decimal("0.01"), Decimal("55.5"), Decimal("100")])
    def test_accepts_in_range(self, subject, value):
        subject.average_rating = value
        subject.full_clean()

    def test_accepts_missing_rating(self, subject):
        subject.average_rating = None
        subject.full_clean()


class TestRunLength:
    def test_period_from_start_to_end(self, subject):
        subject.start_date = days_ago(182)
        subject.end_date = days_ago(91)
        assert abs(subject.run_length().days - 90) <= 5

    def test_without_start_date(self, subject):
        subject.start_date = None
        subject.end_date = days_ago(91)
        assert subject.run_length() is None

    def test_without_end_date_runs_until_today(self, subject):
        subject.start_date = days_ago(61)
        subject.end_date = None
        assert abs(subject.run_length().days - 60) <= 5


@pytest.mark.django_db
class TestCalculateRatingFrequencies:
    def test_no_library_entries_gives_zeroes(self, subject):
        subject.save()
        freqs = subject.calculate_rating_frequencies()
        for bucket in (2, 7, 13, 17):
            assert bucket in freqs
        assert set(freqs) == set(RATING_BUCKETS)
        assert all(count == 0 for count in freqs.values())

    def test_counts_each_rating(self, subject, make_user):
        subject.save()
        for _ in range(3):
            LibraryEntry.objects.create(user=make_user(), media=subject, rating=3)
        LibraryEntry.objects.create(user=make_user(), media=subject, rating=17)
        LibraryEntry.objects.create(user=make_user(), media=subject, rating=None)

        freqs = subject.calculate_rating_frequencies()
        assert freqs[3] == 3
        assert freqs[17] == 1
        assert sum(freqs.values()) == 4

    def test_ignores_entries_of_other_media(self, subject, make_user, anime):
        subject.save()
        LibraryEntry.objects.create(user=make_user(), media=anime, rating=3)
        assert subject.calculate_rating_frequencies()[3] == 0

    def test_has_no_side_effects(self, subject, make_user):
        subject.save()
        LibraryEntry.objects.create(user=make_user(), media=subject, rating=4)
        subject.refresh_from_db()
        stored = dict(subject.rating_frequencies)

        first = subject.calculate_rating_frequencies()
        second = subject.calculate_rating_frequencies()
        subject.refresh_from_db()

        assert first == second
        assert subject.rating_frequencies == stored


@pytest.mark.django_db
class TestRatingFrequencyLedger:
    def test_new_media_has_every_bucket_at_zero(self, subject):
        subject.save()
        subject.refresh_from_db()
        assert subject.rating_frequencies == {str(b): 0 for b in RATING_BUCKETS}

    def test_decrement(self, subject):
        subject.rating_frequencies["3"] = 5
        subject.save()
        subject.decrement_rating_frequency("3")
        subject.refresh_from_db()
        assert subject.rating_frequencies["3"] == 4

    def test_increment(self, subject):
        subject.rating_frequencies["3"] = 5
        subject.save()
        subject.increment_rating_frequency("3")
        subject.refresh_from_db()
        assert subject.rating_frequencies["3"] == 6

    def test_increment_without_pre_existing_value_assumes_zero(self, subject):
        subject.rating_frequencies = {}
        subject.save()
        subject.increment_rating_frequency("3")
        subject.refresh_from_db()
        assert subject.rating_frequencies["3"] == 1

    def test_increment_then_decrement_is_a_no_op(self, subject):
        subject.rating_frequencies["11"] = 2
        subject.save()
        subject.increment_rating_frequency(11)
        subject.decrement_rating_frequency(11)
        subject.refresh_from_db()
        assert subject.rating_frequency(11) == 2

    def test_decrement_stops_at_zero(self, subject):
        subject.save()
        subject.decrement_rating_frequency(20)
        subject.refresh_from_db()
        assert subject.rating_frequency(20) == 0

    def test_updates_the_instance_in_memory(self, subject):
        subject.save()
        subject.increment_rating_frequency(9)
        assert subject.rating_frequency(9) == 1

    def test_bumps_updated_at(self, subject):
        subject.save()
        before = type(subject).objects.get(pk=subject.pk).updated_at

        subject.increment_rating_frequency(4)

        after = type(subject).objects.get(pk=subject.pk).updated_at
        assert after > before
        assert subject.updated_at == after

    @pytest.mark.parametrize("bucket", [0, 1, 21, "abc", None])
    def test_unknown_bucket(self, subject, bucket):
        subject.save()
        with pytest.raises(ValueError):
            subject.increment_rating_frequency(bucket)


@pytest.mark.django_db
class TestFeeds:
    @pytest.mark.parametrize(
        "prop, lookup",
        [
            ("posts_feed", Feed.media_posts),
            ("media_feed", Feed.media_media),
            ("aggregated_feed", Feed.media_aggr),
            ("posts_aggregated_feed", Feed.media_posts_aggr),
            ("media_aggregated_feed", Feed.media_media_aggr),
        ],
    )
    def test_feed_lookup(self, subject, media_class, prop, lookup):
        subject.save()
        assert getattr(subject, prop) == lookup(media_class, subject.pk)

    def test_after_creating_wires_four_follow_edges(self, subject, feed_backend):
        subject.save()

        expected = [
            ("follow", subject.aggregated_feed, subject.posts_feed),
            ("follow", subject.aggregated_feed, subject.media_feed),
            ("follow", subject.posts_aggregated_feed, subject.posts_feed),
            ("follow", subject.media_aggregated_feed, subject.media_feed),
        ]
        assert feed_backend.calls == expected

    def test_each_edge_requested_exactly_once(self, subject, feed_backend):
        subject.save()
        for call in set(feed_backend.calls):
            assert feed_backend.calls.count(call) == 1

    def test_saving_again_does_not_rewire(self, subject, feed_backend):
        subject.save()
        feed_backend.reset()

        subject.end_date = timezone.localdate()
        subject.save()

        assert feed_backend.calls == []


@pytest.mark.django_db
class TestSlug:
    def test_slug_from_canonical_title(self, subject):
        subject.save()
        assert subject.slug == "cowboy-bebop"

    def test_falls_back_to_title_with_year(self, media_class):
        media_class.objects.create(titles={"en_jp": "Cowboy Bebop"})
        second = media_class.objects.create(
            titles={"en_jp": "Cowboy Bebop"},
            start_date=datetime.date(1998, 4, 3),
        )
        assert second.slug == "cowboy-bebop-1998"

    def test_numeric_suffix_when_candidates_are_taken(self, media_class):
        media_class.objects.create(titles={"en_jp": "Cowboy Bebop"})
        media_class.objects.create(titles={"en_jp": "Cowboy Bebop"})
        third = media_class.objects.create(titles={"en_jp": "Cowboy Bebop"})
        assert third.slug == "cowboy-bebop-3"

    def test_keeps_explicit_slug(self, media_class):
        media = media_class.objects.create(titles={"en_jp": "Cowboy Bebop"}, slug="bebop")
        assert media.slug == "bebop"

    def test_canonical_title_falls_back_to_first_title(self, media_class):
        media = media_class(titles={"en": "Attack on Titan"}, canonical_title="ja_jp")
        assert media.canonical_title_text == "Attack on Titan"


class TestProgressLimit:
    def test_anime_limit_is_episode_count(self):
        assert Anime(episode_count=26).progress_limit == 26

    def test_manga_limit_is_chapter_count(self):
        assert Manga(chapter_count=139).progress_limit == 139

    def test_unknown_limit(self, media_class):
        assert media_class().progress_limit is None


@pytest.mark.django_db
class TestFeedWiringIsAtomic:
    @pytest.fixture
    def flaky_backend(self, settings):
        settings.MEDIALIB_FEED_BACKEND = "tests.test_media.FlakyFeedBackend"
        backend = get_feed_backend()
        backend.reset()
        return backend

    def test_failed_wiring_rolls_back_the_row(self, subject, media_class, flaky_backend):
        with pytest.raises(IntegrityError):
            subject.save()

        assert not media_class.objects.exists()
        assert subject.pk is None
        assert subject._state.adding

    def test_retry_wires_every_edge(self, subject, media_class, flaky_backend, settings):
        with pytest.raises(IntegrityError):
            subject.save()

        settings.MEDIALIB_FEED_BACKEND = "medialib.services.feeds.MemoryFeedBackend"
        backend = get_feed_backend()
        backend.reset()
        subject.save()

        assert media_class.objects.count() == 1
        assert backend.calls == [
            ("follow", subject.aggregated_feed, subject.posts_feed),
            ("follow", subject.aggregated_feed, subject.media_feed),
            ("follow", subject.posts_aggregated_feed, subject.posts_feed),
            ("follow", subject.media_aggregated_feed, subject.media_feed),
        ]
