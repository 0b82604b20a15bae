import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


# 日历上每一天的标记
class DayIndicator(str, Enum):
    none = "none"
    low = "low"
    medium = "medium"
    high = "high"
    completed = "completed"


def to_day(value) -> dt.date:
    """把 "YYYY-MM-DD" / ISO datetime / date / datetime 统一截断成日期"""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return dt.date.fromisoformat(text)
        except ValueError:
            return dt.datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    raise ValueError("invalid date")


def _clean_title(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("title must not be empty")
    return value


def _clean_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip()


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    date: dt.date
    priority: Priority = Priority.medium

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        return _clean_title(v)

    @field_validator("description")
    @classmethod
    def check_description(cls, v):
        return _clean_description(v)

    @field_validator("date", mode="before")
    @classmethod
    def truncate_date(cls, v):
        return to_day(v)


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[dt.date] = None
    priority: Optional[Priority] = None
    completed: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def check_title(cls, v):
        if v is None:
            raise ValueError("title must not be empty")
        return _clean_title(v)

    @field_validator("description")
    @classmethod
    def check_description(cls, v):
        return _clean_description(v)

    @field_validator("date", mode="before")
    @classmethod
    def truncate_date(cls, v):
        if v is None:
            raise ValueError("date is required")
        return to_day(v)

    @field_validator("priority", "completed", mode="before")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("field must not be null")
        return v


class Task(BaseModel):
    # 缓存里的任务只读，改动必须经过服务端
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: Optional[str] = None
    date: dt.date
    priority: Priority = Priority.medium
    completed: bool = False
    owner: int
    created_at: dt.datetime
    updated_at: dt.datetime

    @field_validator("date", mode="before")
    @classmethod
    def truncate_date(cls, v):
        return to_day(v)

    # 没带时区的时间按 UTC 处理，缓存里排序时不会混着比较
    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: dt.datetime) -> dt.datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=dt.timezone.utc)
        return v


class UserCreate(BaseModel):
    name: str
    email: str
    password: str

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("invalid email")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("password must be at least 6 characters")
        return v


class UserLogin(BaseModel):
    email: str
    password: str


class User(BaseModel):
    id: int
    name: str
    email: str


class AuthResponse(BaseModel):
    token: str
    user: User
