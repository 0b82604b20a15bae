import logging
from datetime import date
from typing import Any, List, Optional

import pydantic
import requests

from config import settings
from models import Task, User

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ApiError):
    pass


class NotAuthenticatedError(ApiError):
    pass


class TaskNotFoundError(ApiError):
    pass


class TransportError(ApiError):
    """网络错误或者服务端 5xx"""


def _parse(model, data):
    """把服务端返回的数据转成模型；格式不对时也归到 TransportError"""
    try:
        if isinstance(data, list):
            return [model(**item) for item in data]
        return model(**data)
    except (pydantic.ValidationError, TypeError) as exc:
        raise TransportError(f"Malformed response from server: {exc}") from exc


def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        detail = body.get("detail", body.get("message"))
        if isinstance(detail, list):
            # FastAPI 422: [{"loc": [...], "msg": ...}, ...]
            return "; ".join(
                f"{'.'.join(str(p) for p in item.get('loc', [])[1:])}: {item.get('msg')}"
                for item in detail
            )
        if detail:
            return str(detail)
    return f"HTTP {response.status_code}"


class TaskApiClient:
    """
    任务服务的 HTTP 客户端。

    http 可以是 requests.Session，也可以是任何有同样 request() 接口的对象
    （测试里直接传 FastAPI 的 TestClient）。
    """

    def __init__(self, base_url: Optional[str] = None, http=None, token: Optional[str] = None):
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.http = http if http is not None else requests.Session()
        self.token = token

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        url = f"{self.base_url}{path}"
        try:
            r = self.http.request(method, url, headers=headers, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(f"Unable to connect to server: {exc}") from exc

        if r.status_code < 400:
            try:
                return r.json()
            except ValueError as exc:
                raise TransportError(f"Malformed response from server: {exc}", r.status_code) from exc

        message = _error_message(r)
        logger.warning("%s %s -> %s %s", method, path, r.status_code, message)
        if r.status_code == 401:
            raise NotAuthenticatedError(message, r.status_code)
        if r.status_code == 404:
            raise TaskNotFoundError(message, r.status_code)
        if r.status_code in (400, 422):
            raise ValidationError(message, r.status_code)
        if r.status_code >= 500:
            raise TransportError(message, r.status_code)
        raise ApiError(message, r.status_code)

    # ---------- auth ----------

    def register(self, name: str, email: str, password: str) -> User:
        data = self._request("POST", "/auth/register",
                             json={"name": name, "email": email, "password": password})
        self.token = data["token"]
        return _parse(User, data["user"])

    def login(self, email: str, password: str) -> User:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data["token"]
        return _parse(User, data["user"])

    def me(self) -> User:
        return _parse(User, self._request("GET", "/auth/me"))

    def logout(self) -> None:
        try:
            self._request("POST", "/auth/logout")
        finally:
            self.token = None

    # ---------- tasks ----------

    def list_tasks(self, completed: Optional[bool] = None) -> List[Task]:
        params = {}
        if completed is not None:
            params["completed"] = "true" if completed else "false"
        return _parse(Task, self._request("GET", "/tasks", params=params))

    def list_tasks_in_range(self, start: date, end: date) -> List[Task]:
        # 服务端会把 end 当天包含进去，这里不要再自己加一天
        params = {"start": start.isoformat(), "end": end.isoformat()}
        return _parse(Task, self._request("GET", "/tasks/range", params=params))

    def get_task(self, task_id: int) -> Task:
        return _parse(Task, self._request("GET", f"/tasks/{task_id}"))

    def create_task(self, title: str, task_date: date, description: Optional[str] = None,
                    priority: Optional[str] = None) -> Task:
        payload = {"title": title, "description": description, "date": task_date.isoformat()}
        if priority is not None:
            payload["priority"] = getattr(priority, "value", priority)
        return _parse(Task, self._request("POST", "/tasks", json=payload))

    def update_task(self, task_id: int, **fields) -> Task:
        payload = {}
        for key, value in fields.items():
            if isinstance(value, date):
                value = value.isoformat()
            payload[key] = getattr(value, "value", value)
        return _parse(Task, self._request("PUT", f"/tasks/{task_id}", json=payload))

    def toggle_task(self, task_id: int) -> Task:
        return _parse(Task, self._request("PATCH", f"/tasks/{task_id}/toggle"))

    def delete_task(self, task_id: int) -> None:
        self._request("DELETE", f"/tasks/{task_id}")
