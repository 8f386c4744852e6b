"""CRUD API router for WebCNC records.

Provides RESTful endpoints for machines, jobs, designs (including G-code
uploads) and users.  These are plain pass-throughs to the SQLite store in
:mod:`webcnc.db`; live connection state is served by :mod:`webcnc.server`.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

import bcrypt
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from webcnc.db import get_db, init_db
from webcnc.storage import DesignStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["records"])


# ── Helper ────────────────────────────────────────────────────────

def _db() -> sqlite3.Connection:
    init_db()
    return get_db()


def _rows(cur: sqlite3.Cursor) -> list[dict]:
    cols = [d[0] for d in cur.description] if cur.description else []
    return [dict(zip(cols, r)) for r in cur.fetchall()]


def _row(cur: sqlite3.Cursor) -> dict | None:
    r = cur.fetchone()
    if r is None:
        return None
    cols = [d[0] for d in cur.description]
    return dict(zip(cols, r))


def _design_store(request: Request) -> DesignStore:
    return request.app.state.design_store


def _insert(conn: sqlite3.Connection, table: str, fields: dict[str, Any]) -> dict:
    cols = ", ".join(fields)
    marks = ", ".join("?" for _ in fields)
    try:
        cur = conn.execute(
            f"INSERT INTO {table} ({cols}) VALUES ({marks})", list(fields.values())
        )
        conn.commit()
    except sqlite3.IntegrityError as exc:
        conn.rollback()
        logger.error("Insert into %s failed: %s", table, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return _row(conn.execute(f"SELECT * FROM {table} WHERE id = ?", (cur.lastrowid,)))


def _update(conn: sqlite3.Connection, table: str, record_id: int, fields: dict[str, Any]) -> dict:
    if not fields:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    assignments = ", ".join(f"{k} = ?" for k in fields)
    try:
        cur = conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?",
            list(fields.values()) + [record_id],
        )
        conn.commit()
    except sqlite3.IntegrityError as exc:
        conn.rollback()
        logger.error("Update of %s %s failed: %s", table, record_id, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    if cur.rowcount == 0:
        raise HTTPException(status_code=404, detail=f"{table} {record_id} not found")
    return _row(conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,)))


def _delete(conn: sqlite3.Connection, table: str, record_id: int) -> None:
    cur = conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
    conn.commit()
    if cur.rowcount == 0:
        raise HTTPException(status_code=404, detail=f"{table} {record_id} not found")


# ══════════════════════════════════════════════════════════════════
# MACHINES
# ══════════════════════════════════════════════════════════════════

class CNCCreateRequest(BaseModel):
    uuid: str = ""
    name: str = ""
    model: str = ""
    location: str | None = None
    status: str | None = None


class CNCUpdateRequest(BaseModel):
    name: str | None = None
    model: str | None = None
    location: str | None = None
    status: str | None = None


@router.get("/cnc")
async def list_cnc():
    conn = _db()
    cur = conn.execute("SELECT * FROM cnc_machines ORDER BY id")
    return {"message": "CNC machines", "data": _rows(cur)}


@router.post("/cnc")
async def create_cnc(req: CNCCreateRequest):
    if not req.uuid or not req.name or not req.model:
        raise HTTPException(status_code=400, detail="uuid, name and model are required")
    conn = _db()
    row = _insert(conn, "cnc_machines", {
        "uuid": req.uuid,
        "name": req.name,
        "model": req.model,
        "location": req.location,
        "status": req.status or "offline",
    })
    logger.info("CNC record created: %s", req.uuid)
    return {"message": "CNC registered", "data": row}


@router.put("/cnc/{cnc_id}")
async def update_cnc(cnc_id: int, req: CNCUpdateRequest):
    conn = _db()
    row = _update(conn, "cnc_machines", cnc_id, req.model_dump(exclude_unset=True))
    return {"message": "CNC updated", "data": row}


@router.delete("/cnc/{cnc_id}")
async def delete_cnc(cnc_id: int):
    conn = _db()
    _delete(conn, "cnc_machines", cnc_id)
    return {"message": "CNC deleted"}


# ══════════════════════════════════════════════════════════════════
# JOBS
# ══════════════════════════════════════════════════════════════════

class JobCreateRequest(BaseModel):
    cnc_id: int
    design_id: int
    duration: int | None = None
    status: str | None = None


@router.post("/jobs")
async def create_job(req: JobCreateRequest):
    conn = _db()
    row = _insert(conn, "jobs", {
        "cnc_id": req.cnc_id,
        "design_id": req.design_id,
        "duration": req.duration,
        "status": req.status or "pending",
    })
    return {"message": "Job created", "data": row}


@router.get("/jobs")
async def list_jobs():
    conn = _db()
    cur = conn.execute(
        """SELECT j.id, j.cnc_id, c.uuid AS cnc_uuid, c.name AS cnc_name,
                  j.design_id, d.name AS design_name,
                  j.duration, j.started_at, j.finished_at, j.status
           FROM jobs j
           JOIN cnc_machines c ON c.id = j.cnc_id
           JOIN designs d ON d.id = j.design_id
           ORDER BY j.started_at DESC, j.id DESC"""
    )
    return {"message": "Jobs", "data": _rows(cur)}


# ══════════════════════════════════════════════════════════════════
# DESIGNS
# ══════════════════════════════════════════════════════════════════

class DesignCreateRequest(BaseModel):
    name: str
    user_id: int | None = None


@router.post("/designs")
async def create_design(req: DesignCreateRequest):
    conn = _db()
    row = _insert(conn, "designs", {"name": req.name, "user_id": req.user_id})
    return {"message": "Design created", "data": row}


@router.get("/designs")
async def list_designs():
    conn = _db()
    cur = conn.execute(
        """SELECT d.id, d.name, d.created_at, d.file_url, d.user_id, u.email AS user_email
           FROM designs d
           LEFT JOIN users u ON u.id = d.user_id
           ORDER BY d.created_at DESC, d.id DESC"""
    )
    return {"message": "Designs", "data": _rows(cur)}


@router.post("/designs/{design_id}/gcode")
async def upload_gcode(
    design_id: int,
    file: UploadFile = File(...),
    store: DesignStore = Depends(_design_store),
):
    conn = _db()
    if conn.execute("SELECT 1 FROM designs WHERE id = ?", (design_id,)).fetchone() is None:
        raise HTTPException(status_code=404, detail=f"Design {design_id} not found")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="No file content received")

    name = store.save(design_id, data)
    file_url = store.public_url(name)
    conn.execute("UPDATE designs SET file_url = ? WHERE id = ?", (file_url, design_id))
    conn.commit()
    return {"message": "G-code uploaded and linked to design", "file_url": file_url}


@router.get("/designs/files/{name}")
async def download_gcode(name: str, store: DesignStore = Depends(_design_store)):
    path = store.path_for(name)
    if path is None:
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, media_type="text/plain", filename=name)


# ══════════════════════════════════════════════════════════════════
# USERS
# ══════════════════════════════════════════════════════════════════

_USER_COLUMNS = "id, name, email, role, status, created_at"


class UserCreateRequest(BaseModel):
    name: str
    email: str
    password: str
    role: str = "operator"


class UserUpdateRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    role: str | None = None
    status: str | None = None


def _public_user(row: dict) -> dict:
    return {k: v for k, v in row.items() if k != "password_hash"}


@router.get("/users")
async def list_users():
    conn = _db()
    cur = conn.execute(f"SELECT {_USER_COLUMNS} FROM users ORDER BY id")
    return {"message": "Users", "data": _rows(cur)}


@router.post("/users")
async def create_user(req: UserCreateRequest):
    conn = _db()
    password_hash = bcrypt.hashpw(req.password.encode(), bcrypt.gensalt()).decode()
    row = _insert(conn, "users", {
        "name": req.name,
        "email": req.email,
        "role": req.role,
        "password_hash": password_hash,
        "status": "active",
    })
    return {"message": "User created", "data": _public_user(row)}


@router.put("/users/{user_id}")
async def update_user(user_id: int, req: UserUpdateRequest):
    conn = _db()
    row = _update(conn, "users", user_id, req.model_dump(exclude_unset=True))
    return {"message": "User updated", "data": _public_user(row)}


@router.delete("/users/{user_id}")
async def delete_user(user_id: int):
    conn = _db()
    _delete(conn, "users", user_id)
    return {"message": "User deleted"}
