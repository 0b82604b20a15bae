"""
按日期索引的任务缓存。

客户端在拉取一段日期区间后把任务放进来，日历和当天任务列表都只从这里读。
单个任务的增删改在服务端确认成功后再打补丁，缓存始终和服务端已确认的状态一致。

不变量：
- 每个任务只出现在一个桶里，桶的 key 就是它自己的日期
- 所有桶加起来正好是当前加载的任务集合
"""

import datetime as dt
from typing import Dict, Iterable, List, Optional, Union

from models import DayIndicator, Priority, Task, to_day

DayLike = Union[dt.date, dt.datetime, str]

# 从高到低
_PRIORITY_ORDER = (Priority.high, Priority.medium, Priority.low)


def day_key(value: DayLike) -> str:
    """截断到天，返回 "YYYY-MM-DD" """
    return to_day(value).isoformat()


def _bucket_sort_key(task: Task):
    return (task.created_at, task.id)


class TaskCache:
    def __init__(self, tasks: Optional[Iterable[Task]] = None):
        self._buckets: Dict[str, List[Task]] = {}
        # id -> 所在桶的 key
        self._locations: Dict[int, str] = {}
        if tasks is not None:
            self.load(tasks)

    # ---------- 写 ----------

    def load(self, tasks: Iterable[Task]) -> None:
        """整体替换，按日期重建索引"""
        self._buckets = {}
        self._locations = {}
        for task in tasks:
            # 同一个 id 出现多次时以最后一次为准
            self._discard(task.id)
            self._insert(task)

    def upsert(self, task: Task) -> None:
        """先从旧桶里拿掉（日期可能变了），再放进当前日期的桶"""
        self._discard(task.id)
        self._insert(task)

    def remove(self, task_id: int) -> None:
        self._discard(task_id)

    def clear(self) -> None:
        self._buckets = {}
        self._locations = {}

    def _insert(self, task: Task) -> None:
        key = day_key(task.date)
        bucket = self._buckets.setdefault(key, [])
        bucket.append(task)
        bucket.sort(key=_bucket_sort_key)
        self._locations[task.id] = key

    def _discard(self, task_id: int) -> Optional[Task]:
        key = self._locations.pop(task_id, None)
        if key is None:
            return None
        bucket = self._buckets[key]
        removed = None
        for i, existing in enumerate(bucket):
            if existing.id == task_id:
                removed = bucket.pop(i)
                break
        if not bucket:
            del self._buckets[key]
        return removed

    # ---------- 读 ----------

    def get(self, task_id: int) -> Optional[Task]:
        key = self._locations.get(task_id)
        if key is None:
            return None
        for task in self._buckets[key]:
            if task.id == task_id:
                return task
        return None

    def tasks_for_date(self, day: DayLike) -> List[Task]:
        # 返回副本，外部修改不会影响索引
        return list(self._buckets.get(day_key(day), ()))

    def highest_priority_for_date(self, day: DayLike) -> DayIndicator:
        tasks = self.tasks_for_date(day)
        if not tasks:
            return DayIndicator.none

        open_tasks = [t for t in tasks if not t.completed]
        if not open_tasks:
            return DayIndicator.completed

        present = {t.priority for t in open_tasks}
        for priority in _PRIORITY_ORDER:
            if priority in present:
                return DayIndicator(priority.value)
        return DayIndicator.low

    def dates(self) -> List[str]:
        return sorted(self._buckets)

    def tasks(self) -> List[Task]:
        out: List[Task] = []
        for key in self.dates():
            out.extend(self._buckets[key])
        return out

    def __len__(self) -> int:
        return len(self._locations)

    def __contains__(self, task_id) -> bool:
        return task_id in self._locations
