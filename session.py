import calendar
import logging
from contextlib import contextmanager
from datetime import date
from typing import List, Optional, Set

from client import ApiError, NotAuthenticatedError, TaskApiClient
from models import DayIndicator, Task, User
from task_cache import DayLike, TaskCache

logger = logging.getLogger(__name__)


def month_bounds(day: date):
    """这个月的第一天和最后一天（都包含）"""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


class CalendarSession:
    """
    一次登录对应一个会话：当前用户、token、任务缓存和选中的日期都挂在这里，
    退出登录时一起丢掉。

    所有修改都先请求服务端，成功后才更新缓存；失败时缓存保持不变，异常直接抛给调用方。
    """

    def __init__(self, client: Optional[TaskApiClient] = None, today: Optional[date] = None):
        self.client = client if client is not None else TaskApiClient()
        self.user: Optional[User] = None
        self.cache: Optional[TaskCache] = None
        self.selected_date: date = today or date.today()
        # 正在等待服务端响应的任务 id
        self.pending: Set[int] = set()

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    # ---------- auth ----------

    def login(self, email: str, password: str) -> User:
        # 已经登录的话先退出，旧 token 要在服务端撤销
        if self.is_authenticated:
            self.logout()
        user = self.client.login(email, password)
        self._start(user)
        return user

    def register(self, name: str, email: str, password: str) -> User:
        if self.is_authenticated:
            self.logout()
        user = self.client.register(name, email, password)
        self._start(user)
        return user

    def resume(self, token: str) -> User:
        """用保存下来的 token 恢复会话"""
        self.client.token = token
        try:
            user = self.client.me()
        except ApiError:
            self.client.token = None
            raise
        self._start(user)
        return user

    def logout(self) -> None:
        if self.client.token:
            try:
                self.client.logout()
            except ApiError as exc:
                # 服务端撤销失败也要清掉本地状态
                logger.warning("token revoke failed: %s", exc)
        self.user = None
        self.cache = None
        self.pending.clear()

    def _start(self, user: User) -> None:
        self.user = user
        self.cache = TaskCache()
        self.pending.clear()
        logger.info("session started for user %s", user.id)

    def _require_cache(self) -> TaskCache:
        if self.cache is None:
            raise NotAuthenticatedError("Not authenticated", 401)
        return self.cache

    @contextmanager
    def _in_flight(self, task_id: int):
        self.pending.add(task_id)
        try:
            yield
        finally:
            self.pending.discard(task_id)

    # ---------- fetch ----------

    def fetch_tasks(self, start: Optional[date] = None, end: Optional[date] = None) -> List[Task]:
        """
        默认拉取选中日期所在月份的全部任务，然后整体重建缓存。
        只给了一头时，另一头取那一头所在月份的月初/月末。
        """
        cache = self._require_cache()
        if start is None and end is None:
            start, end = month_bounds(self.selected_date)
        elif end is None:
            end = month_bounds(start)[1]
        elif start is None:
            start = month_bounds(end)[0]
        tasks = self.client.list_tasks_in_range(start, end)
        cache.load(tasks)
        return tasks

    # ---------- mutations ----------

    def add_task(self, title: str, task_date: date, description: Optional[str] = None,
                 priority: Optional[str] = None) -> Task:
        cache = self._require_cache()
        task = self.client.create_task(title, task_date, description=description, priority=priority)
        cache.upsert(task)
        return task

    def update_task(self, task_id: int, **fields) -> Task:
        cache = self._require_cache()
        with self._in_flight(task_id):
            task = self.client.update_task(task_id, **fields)
        cache.upsert(task)
        return task

    def toggle_task(self, task_id: int) -> Task:
        cache = self._require_cache()
        with self._in_flight(task_id):
            task = self.client.toggle_task(task_id)
        cache.upsert(task)
        return task

    def delete_task(self, task_id: int) -> None:
        cache = self._require_cache()
        with self._in_flight(task_id):
            self.client.delete_task(task_id)
        cache.remove(task_id)

    def is_pending(self, task_id: int) -> bool:
        return task_id in self.pending

    # ---------- views ----------

    def select_date(self, day: date) -> None:
        self.selected_date = day

    def tasks_for_date(self, day: DayLike) -> List[Task]:
        return self._require_cache().tasks_for_date(day)

    def tasks_for_selected_date(self) -> List[Task]:
        return self.tasks_for_date(self.selected_date)

    def highest_priority_for_date(self, day: DayLike) -> DayIndicator:
        return self._require_cache().highest_priority_for_date(day)
