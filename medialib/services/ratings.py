# medialib/services/ratings.py

import os
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Mapping, Optional

import django
from django.apps import apps
from django.db import transaction
from django.db.models import Count

# ---------------------------------------------------------------------------
# БАКЕТЫ ОЦЕНОК
# ---------------------------------------------------------------------------

# Двадцатибалльная шкала с шагом 1: 2..20.
# Бакет b соответствует b * 5 на шкале average_rating (0..100].
RATING_BUCKETS = tuple(range(2, 21))
BUCKET_TO_PERCENT = 5

BATCH_SIZE = 1000


def bucket_key(bucket) -> str:
    """
    Ключ бакета в rating_frequencies.

    Принимает 3 или '3', возвращает '3'.
    Неизвестный бакет → ValueError.
    """
    try:
        value = int(bucket)
    except (TypeError, ValueError):
        raise ValueError(f"invalid rating bucket: {bucket!r}") from None
    if value not in RATING_BUCKETS:
        raise ValueError(f"unknown rating bucket: {bucket!r}")
    return str(value)


def default_rating_frequencies() -> Dict[str, int]:
    return {str(bucket): 0 for bucket in RATING_BUCKETS}


def compute_average_rating(frequencies: Mapping) -> Optional[Decimal]:
    """
    Средняя оценка по частотам в шкале 0..100.

    Σ(bucket * 5 * count) / Σ count, округление до сотых.
    Нет оценок → None.
    """
    total = 0
    weighted = 0
    for bucket, count in frequencies.items():
        count = int(count)
        if count <= 0:
            continue
        total += count
        weighted += int(bucket) * BUCKET_TO_PERCENT * count

    if not total:
        return None
    return (Decimal(weighted) / Decimal(total)).quantize(Decimal("0.01"))


# ---------------------------------------------------------------------------
# ПАКЕТНЫЙ ПЕРЕСЧЁТ
# ---------------------------------------------------------------------------

def _media_models():
    from medialib.models import Media  # models импортирует этот модуль

    return [
        model
        for model in apps.get_app_config("medialib").get_models()
        if issubclass(model, Media)
    ]


def _build_frequency_map(model) -> Dict[int, Dict[int, int]]:
    """
    media_id → {bucket: count} одним GROUP BY по library_entries.
    """
    from django.contrib.contenttypes.models import ContentType

    from medialib.models import LibraryEntry

    content_type = ContentType.objects.get_for_model(model)
    freq_map: Dict[int, Dict[int, int]] = defaultdict(dict)

    rows = (
        LibraryEntry.objects
        .filter(media_type=content_type, rating__isnull=False)
        .values("media_id", "rating")
        .annotate(n=Count("id"))
        .order_by()
    )
    for row in rows:
        freq_map[row["media_id"]][row["rating"]] = row["n"]

    return freq_map


@transaction.atomic
def recalc_rating_frequencies(model=None) -> int:
    """
    Перестраивает rating_frequencies и average_rating у всех тайтлов
    по library_entries. Возвращает количество обновлённых строк.

    Нужен, когда счётчики разъехались: массовые удаления записей
    через QuerySet.delete() журнал не двигают.
    """
    models_ = [model] if model is not None else _media_models()
    updated = 0

    for media_model in models_:
        freq_map = _build_frequency_map(media_model)
        print(f"→ {media_model.__name__}: тайтлов с оценками {len(freq_map):,}")

        batch = []
        qs = media_model.objects.only("id", "rating_frequencies", "average_rating")
        for media in qs.iterator(chunk_size=5000):
            counts = freq_map.get(media.id, {})
            freqs = {
                str(bucket): counts.get(bucket, 0)
                for bucket in RATING_BUCKETS
            }
            media.rating_frequencies = freqs
            media.average_rating = compute_average_rating(freqs)
            batch.append(media)

            if len(batch) >= BATCH_SIZE:
                media_model.objects.bulk_update(
                    batch, ["rating_frequencies", "average_rating"]
                )
                updated += len(batch)
                print(f"→ обновлено {updated:,}")
                batch = []

        if batch:
            media_model.objects.bulk_update(
                batch, ["rating_frequencies", "average_rating"]
            )
            updated += len(batch)

    print(f"✓ пересчёт частот оценок завершён, обновлено: {updated:,}")
    return updated


# ---------------------------------------------------------------------------
# Запуск как модуля: python -m medialib.services.ratings
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
    django.setup()
    recalc_rating_frequencies()
