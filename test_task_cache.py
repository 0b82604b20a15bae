from datetime import date, datetime, timedelta, timezone

import pytest

from models import DayIndicator, Task
from task_cache import TaskCache, day_key

BASE = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_task(task_id, day="2024-03-01", priority="medium", completed=False, title=None):
    return Task(
        id=task_id,
        title=title or f"task {task_id}",
        date=day,
        priority=priority,
        completed=completed,
        owner=1,
        created_at=BASE + timedelta(minutes=task_id),
        updated_at=BASE + timedelta(minutes=task_id),
    )


def ids(tasks):
    return [t.id for t in tasks]


def test_day_key_truncates():
    assert day_key(date(2024, 3, 1)) == "2024-03-01"
    assert day_key(datetime(2024, 3, 1, 23, 59)) == "2024-03-01"
    assert day_key("2024-03-01T08:00:00Z") == "2024-03-01"


def test_load_buckets_every_task_once():
    tasks = [
        make_task(1, "2024-03-01"),
        make_task(2, "2024-03-02"),
        make_task(3, "2024-03-01"),
        make_task(4, "2024-03-15"),
    ]
    cache = TaskCache()
    cache.load(tasks)

    assert cache.dates() == ["2024-03-01", "2024-03-02", "2024-03-15"]
    seen = []
    for key in cache.dates():
        bucket = cache.tasks_for_date(key)
        assert all(day_key(t.date) == key for t in bucket)
        seen.extend(ids(bucket))
    assert sorted(seen) == [1, 2, 3, 4]
    assert len(cache) == 4


def test_load_replaces_and_is_idempotent():
    cache = TaskCache([make_task(9, "2024-02-01")])
    tasks = [make_task(1, "2024-03-01"), make_task(2, "2024-03-01")]
    cache.load(tasks)
    first = {k: ids(cache.tasks_for_date(k)) for k in cache.dates()}
    cache.load(tasks)
    second = {k: ids(cache.tasks_for_date(k)) for k in cache.dates()}

    assert first == second == {"2024-03-01": [1, 2]}
    assert 9 not in cache


def test_bucket_order_is_by_creation():
    cache = TaskCache()
    cache.load([make_task(3), make_task(1), make_task(2)])
    assert ids(cache.tasks_for_date("2024-03-01")) == [1, 2, 3]


def test_tasks_for_empty_date():
    assert TaskCache().tasks_for_date(date(2024, 1, 1)) == []


def test_tasks_for_date_returns_snapshot():
    cache = TaskCache([make_task(1)])
    snapshot = cache.tasks_for_date("2024-03-01")
    snapshot.clear()
    assert ids(cache.tasks_for_date("2024-03-01")) == [1]


def test_upsert_inserts_new_task():
    cache = TaskCache()
    cache.upsert(make_task(1, "2024-03-05"))
    assert ids(cache.tasks_for_date(date(2024, 3, 5))) == [1]


def test_upsert_is_idempotent():
    task = make_task(1)
    cache = TaskCache([make_task(2)])
    cache.upsert(task)
    once = ids(cache.tasks_for_date("2024-03-01"))
    cache.upsert(task)
    assert ids(cache.tasks_for_date("2024-03-01")) == once == [1, 2]
    assert len(cache) == 2


def test_upsert_with_new_date_moves_task():
    cache = TaskCache([make_task(1, "2024-03-01"), make_task(2, "2024-03-01")])
    cache.upsert(make_task(1, "2024-03-10"))

    assert ids(cache.tasks_for_date("2024-03-01")) == [2]
    assert ids(cache.tasks_for_date("2024-03-10")) == [1]
    assert len(cache) == 2


def test_upsert_drops_emptied_bucket():
    cache = TaskCache([make_task(1, "2024-03-01")])
    cache.upsert(make_task(1, "2024-03-02"))
    assert cache.dates() == ["2024-03-02"]


def test_upsert_replaces_in_place():
    cache = TaskCache([make_task(1), make_task(2)])
    cache.upsert(make_task(1, completed=True, title="renamed"))
    bucket = cache.tasks_for_date("2024-03-01")
    assert ids(bucket) == [1, 2]
    assert bucket[0].completed is True
    assert bucket[0].title == "renamed"
    assert cache.get(1).title == "renamed"


def test_remove():
    cache = TaskCache([make_task(1), make_task(2, "2024-03-02")])
    cache.remove(1)
    assert 1 not in ids(cache.tasks_for_date("2024-03-01"))
    assert 1 not in cache
    assert cache.get(1) is None
    # 不存在的 id 什么都不做
    cache.remove(42)
    assert ids(cache.tasks()) == [2]


def test_tasks_sorted_by_day():
    cache = TaskCache([make_task(1, "2024-03-09"), make_task(2, "2024-03-02"), make_task(3, "2024-03-09")])
    assert ids(cache.tasks()) == [2, 1, 3]


def test_clear():
    cache = TaskCache([make_task(1)])
    cache.clear()
    assert len(cache) == 0
    assert cache.tasks() == []


@pytest.mark.parametrize("bucket, expected", [
    ([], DayIndicator.none),
    ([dict(completed=True)], DayIndicator.completed),
    ([dict(priority="high", completed=True), dict(priority="low", completed=True)], DayIndicator.completed),
    ([dict(priority="low"), dict(priority="high", completed=True)], DayIndicator.low),
    ([dict(priority="medium"), dict(priority="high")], DayIndicator.high),
    ([dict(priority="low"), dict(priority="medium")], DayIndicator.medium),
    ([dict(priority="low")], DayIndicator.low),
])
def test_highest_priority_for_date(bucket, expected):
    cache = TaskCache([make_task(i + 1, **fields) for i, fields in enumerate(bucket)])
    assert cache.highest_priority_for_date(date(2024, 3, 1)) == expected


def test_highest_priority_follows_patches():
    cache = TaskCache([make_task(1, priority="high"), make_task(2, priority="low")])
    assert cache.highest_priority_for_date("2024-03-01") == DayIndicator.high

    cache.upsert(make_task(1, priority="high", completed=True))
    assert cache.highest_priority_for_date("2024-03-01") == DayIndicator.low

    cache.remove(2)
    assert cache.highest_priority_for_date("2024-03-01") == DayIndicator.completed

    cache.upsert(make_task(1, "2024-03-02", priority="high", completed=True))
    assert cache.highest_priority_for_date("2024-03-01") == DayIndicator.none


def test_mixed_naive_and_aware_timestamps():
    aware = make_task(1)
    naive = Task(id=2, title="naive", date="2024-03-01", owner=1,
                 created_at=datetime(2024, 3, 1, 8, 0), updated_at=datetime(2024, 3, 1, 8, 0))
    assert naive.created_at.tzinfo is not None

    cache = TaskCache([aware, naive])
    cache.upsert(make_task(3))
    # 08:00 UTC 早于 09:01 UTC
    assert ids(cache.tasks_for_date("2024-03-01")) == [2, 1, 3]
