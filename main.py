import logging
import sqlite3
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import database
from auth import get_current_token, get_current_user, hash_password, issue_token, verify_password
from config import settings
from database import get_db, init_db
from logging_setup import setup_logging
from models import AuthResponse, Task, TaskCreate, TaskUpdate, User, UserCreate, UserLogin

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, settings.log_dir)
    # 确保数据库已初始化
    init_db()
    logger.info("database ready at %s", settings.db_path)
    yield


app = FastAPI(title="Task Calendar", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(sqlite3.Error)
async def store_error_handler(request: Request, exc: sqlite3.Error):
    logger.exception("store failure on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server error"})


def _not_found():
    return HTTPException(status_code=404, detail="Task not found")


def _to_user(row: dict) -> User:
    return User(id=row["id"], name=row["name"], email=row["email"])


# ---------- auth ----------


@app.post("/api/auth/register", response_model=AuthResponse, status_code=201)
def register(payload: UserCreate, conn=Depends(get_db)):
    user = database.create_user(conn, payload.name, payload.email, hash_password(payload.password))
    if user is None:
        raise HTTPException(status_code=400, detail="User already exists")
    logger.info("registered user %s", user["id"])
    return AuthResponse(token=issue_token(conn, user["id"]), user=_to_user(user))


@app.post("/api/auth/login", response_model=AuthResponse)
def login(payload: UserLogin, conn=Depends(get_db)):
    user = database.get_user_by_email(conn, payload.email.strip().lower())
    if user is None or not verify_password(payload.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return AuthResponse(token=issue_token(conn, user["id"]), user=_to_user(user))


@app.get("/api/auth/me", response_model=User)
def me(user: dict = Depends(get_current_user)):
    return _to_user(user)


@app.post("/api/auth/logout")
def logout(user: dict = Depends(get_current_user),
           token: str = Depends(get_current_token),
           conn=Depends(get_db)):
    database.delete_token(conn, token)
    return {"message": "Logged out"}


# ---------- tasks ----------

# 🔵 Read - 获取当前用户的所有任务，按日期升序


@app.get("/api/tasks", response_model=List[Task])
def read_tasks(completed: Optional[bool] = None,
               user: dict = Depends(get_current_user),
               conn=Depends(get_db)):
    return database.list_tasks(conn, user["id"], completed=completed)


# 🔵 Read - 按日期区间获取任务（end 当天也包含在内）
# 必须放在 /api/tasks/{task_id} 前面


@app.get("/api/tasks/range", response_model=List[Task])
def read_tasks_in_range(start: date = Query(...),
                        end: date = Query(...),
                        user: dict = Depends(get_current_user),
                        conn=Depends(get_db)):
    if end < start:
        raise HTTPException(status_code=400, detail="End date must not be before start date")
    return database.list_tasks_in_range(conn, user["id"], start, end)


# Create - 添加任务


@app.post("/api/tasks", response_model=Task, status_code=201)
def create_task(task: TaskCreate,
                user: dict = Depends(get_current_user),
                conn=Depends(get_db)):
    created = database.create_task(
        conn, user["id"], task.title, task.description, task.date, task.priority.value)
    logger.info("user %s created task %s", user["id"], created["id"])
    return created

# 🟡 Read - 获取单个任务


@app.get("/api/tasks/{task_id}", response_model=Task)
def read_task(task_id: int,
              user: dict = Depends(get_current_user),
              conn=Depends(get_db)):
    task = database.get_task(conn, user["id"], task_id)
    if task is None:
        raise _not_found()
    return task

# 🟠 Update - 修改任务（只替换传入的字段）


@app.put("/api/tasks/{task_id}", response_model=Task)
def update_task(task_id: int, task_update: TaskUpdate,
                user: dict = Depends(get_current_user),
                conn=Depends(get_db)):
    fields = task_update.model_dump(exclude_unset=True, mode="json")
    task = database.update_task(conn, user["id"], task_id, fields)
    if task is None:
        raise _not_found()
    logger.info("user %s updated task %s (%s)", user["id"], task_id, ", ".join(fields) or "no fields")
    return task

# 🟢 Toggle - 切换完成状态


@app.patch("/api/tasks/{task_id}/toggle", response_model=Task)
def toggle_task(task_id: int,
                user: dict = Depends(get_current_user),
                conn=Depends(get_db)):
    task = database.toggle_task(conn, user["id"], task_id)
    if task is None:
        raise _not_found()
    return task

# 🔴 Delete - 删除任务


@app.delete("/api/tasks/{task_id}")
def delete_task(task_id: int,
                user: dict = Depends(get_current_user),
                conn=Depends(get_db)):
    if not database.delete_task(conn, user["id"], task_id):
        raise _not_found()
    logger.info("user %s deleted task %s", user["id"], task_id)
    return {"message": "Task deleted"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="127.0.0.1", port=8000)
