import sqlite3
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from config import settings


def get_db_connection(db_path: Optional[str] = None):
    # FastAPI 的同步依赖和路由可能跑在不同的线程里
    conn = sqlite3.connect(db_path or settings.db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row  # 返回 dict 风格
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def get_db():
    """FastAPI 依赖：每个请求一个连接"""
    conn = get_db_connection()
    try:
        yield conn
    finally:
        conn.close()

# 初始化数据库（只需要执行一次）


def init_db(db_path: Optional[str] = None):
    conn = get_db_connection(db_path)
    cursor = conn.cursor()
    cursor.executescript('''
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS tokens (
        token TEXT PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        expires_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        description TEXT,
        date TEXT NOT NULL,
        priority TEXT NOT NULL DEFAULT 'medium'
            CHECK (priority IN ('low', 'medium', 'high')),
        completed BOOLEAN NOT NULL DEFAULT 0,
        owner INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_tasks_owner_date ON tasks (owner, date);
    CREATE INDEX IF NOT EXISTS idx_tasks_owner_completed ON tasks (owner, completed);
    ''')
    conn.commit()
    conn.close()


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def row_to_task(row) -> dict:
    task = dict(row)
    task["completed"] = bool(task["completed"])
    return task


# ---------- tasks ----------
# 所有查询都带上 owner，别人的任务一律当作不存在

def list_tasks(conn, owner: int, completed: Optional[bool] = None) -> list:
    query = "SELECT * FROM tasks WHERE owner = ?"
    params = [owner]
    if completed is not None:
        query += " AND completed = ?"
        params.append(completed)
    query += " ORDER BY date ASC, id ASC"
    rows = conn.execute(query, tuple(params)).fetchall()
    return [row_to_task(r) for r in rows]


def list_tasks_in_range(conn, owner: int, start: date, end: date) -> list:
    # end 往后推一天再用 <，这样 end 当天的任务也包含在内
    # date.max 没有下一天，只能用 <=
    if end < date.max:
        end_clause, end_bound = "date < ?", end + timedelta(days=1)
    else:
        end_clause, end_bound = "date <= ?", end
    rows = conn.execute(
        f"SELECT * FROM tasks WHERE owner = ? AND date >= ? AND {end_clause} "
        "ORDER BY date ASC, id ASC",
        (owner, start.isoformat(), end_bound.isoformat()),
    ).fetchall()
    return [row_to_task(r) for r in rows]


def get_task(conn, owner: int, task_id: int) -> Optional[dict]:
    row = conn.execute(
        "SELECT * FROM tasks WHERE id = ? AND owner = ?", (task_id, owner)
    ).fetchone()
    if row is None:
        return None
    return row_to_task(row)


def create_task(conn, owner: int, title: str, description: Optional[str],
                task_date: date, priority: str) -> dict:
    now = utc_now()
    cursor = conn.cursor()
    cursor.execute(
        "INSERT INTO tasks (title, description, date, priority, completed, owner, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        (title, description, task_date.isoformat(), priority, False, owner, now, now),
    )
    conn.commit()
    return get_task(conn, owner, cursor.lastrowid)


def update_task(conn, owner: int, task_id: int, fields: dict) -> Optional[dict]:
    """只更新传入的字段，返回更新后的任务；不存在（或不属于 owner）返回 None"""
    existing = get_task(conn, owner, task_id)
    if existing is None:
        return None

    allowed = ("title", "description", "date", "priority", "completed")
    updates = {k: v for k, v in fields.items() if k in allowed}
    if "date" in updates and isinstance(updates["date"], date):
        updates["date"] = updates["date"].isoformat()

    assignments = [f"{k} = ?" for k in updates]
    params = list(updates.values())
    assignments.append("updated_at = ?")
    params.append(utc_now())
    params.extend([task_id, owner])

    conn.execute(
        f"UPDATE tasks SET {', '.join(assignments)} WHERE id = ? AND owner = ?",
        tuple(params),
    )
    conn.commit()
    return get_task(conn, owner, task_id)


def toggle_task(conn, owner: int, task_id: int) -> Optional[dict]:
    cursor = conn.cursor()
    cursor.execute(
        "UPDATE tasks SET completed = NOT completed, updated_at = ? WHERE id = ? AND owner = ?",
        (utc_now(), task_id, owner),
    )
    conn.commit()
    if cursor.rowcount == 0:
        return None
    return get_task(conn, owner, task_id)


def delete_task(conn, owner: int, task_id: int) -> bool:
    cursor = conn.cursor()
    cursor.execute("DELETE FROM tasks WHERE id = ? AND owner = ?", (task_id, owner))
    conn.commit()
    return cursor.rowcount > 0


# ---------- users / tokens ----------

def create_user(conn, name: str, email: str, password_hash: str) -> Optional[dict]:
    cursor = conn.cursor()
    try:
        cursor.execute(
            "INSERT INTO users (name, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
            (name, email, password_hash, utc_now()),
        )
    except sqlite3.IntegrityError:
        conn.rollback()
        return None
    conn.commit()
    return get_user(conn, cursor.lastrowid)


def get_user(conn, user_id: int) -> Optional[dict]:
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return dict(row) if row is not None else None


def get_user_by_email(conn, email: str) -> Optional[dict]:
    row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
    return dict(row) if row is not None else None


def purge_expired_tokens(conn, now: Optional[datetime] = None) -> int:
    # expires_at 都是 UTC 的 isoformat，可以直接按字符串比较
    now = now or datetime.now(timezone.utc)
    cursor = conn.execute("DELETE FROM tokens WHERE expires_at <= ?", (now.isoformat(),))
    conn.commit()
    return cursor.rowcount


def save_token(conn, token: str, user_id: int, expires_at: datetime):
    conn.execute(
        "INSERT INTO tokens (token, user_id, expires_at) VALUES (?, ?, ?)",
        (token, user_id, expires_at.isoformat()),
    )
    conn.commit()


def get_token(conn, token: str) -> Optional[dict]:
    row = conn.execute("SELECT * FROM tokens WHERE token = ?", (token,)).fetchone()
    return dict(row) if row is not None else None


def delete_token(conn, token: str):
    conn.execute("DELETE FROM tokens WHERE token = ?", (token,))
    conn.commit()


# 如果你直接运行 database.py，可以初始化数据库
if __name__ == "__main__":
    init_db()
