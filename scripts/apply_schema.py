#!/usr/bin/env python3
"""Create the ACC admin tables (idempotent)."""
import asyncio
import os

import asyncpg

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id BIGSERIAL PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    status TEXT,
    update_version INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS request (
    id BIGSERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT,
    ip TEXT,
    forwarded_ip TEXT,
    status TEXT NOT NULL DEFAULT 'Open',
    update_version INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS emailtemplate (
    id BIGSERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    active BOOLEAN NOT NULL DEFAULT TRUE,
    update_version INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS jobqueue (
    id BIGSERIAL PRIMARY KEY,
    task TEXT NOT NULL,
    user_id BIGINT REFERENCES users(id),
    request_id BIGINT REFERENCES request(id),
    email_template_id BIGINT REFERENCES emailtemplate(id),
    parent_id BIGINT REFERENCES jobqueue(id),
    parameters JSONB,
    enqueue TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    status TEXT NOT NULL DEFAULT 'ready' CHECK (status IN
        ('ready', 'waiting', 'running', 'complete', 'failed', 'cancelled', 'held')),
    error TEXT,
    acknowledged BOOLEAN,
    update_version INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_jobqueue_status ON jobqueue(status);
CREATE INDEX IF NOT EXISTS idx_jobqueue_user ON jobqueue(user_id);
CREATE INDEX IF NOT EXISTS idx_jobqueue_request ON jobqueue(request_id);
CREATE INDEX IF NOT EXISTS idx_jobqueue_parent ON jobqueue(parent_id);

CREATE TABLE IF NOT EXISTS log (
    id BIGSERIAL PRIMARY KEY,
    object_type TEXT NOT NULL,
    object_id BIGINT NOT NULL,
    user_id BIGINT,
    action TEXT NOT NULL,
    comment TEXT,
    timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_log_object ON log(object_type, object_id);

CREATE TABLE IF NOT EXISTS geolocation (
    id BIGSERIAL PRIMARY KEY,
    address TEXT NOT NULL UNIQUE,
    data TEXT,
    creation TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_update TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    update_version INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS rdnscache (
    id BIGSERIAL PRIMARY KEY,
    address TEXT NOT NULL UNIQUE,
    data TEXT,
    creation TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS ban (
    id BIGSERIAL PRIMARY KEY,
    type TEXT NOT NULL CHECK (type IN ('IP', 'Name', 'EMail')),
    target TEXT NOT NULL,
    user_id BIGINT REFERENCES users(id),
    reason TEXT NOT NULL,
    date TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    duration BIGINT NOT NULL,
    active BOOLEAN NOT NULL DEFAULT TRUE,
    update_version INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_ban_target_active ON ban(target) WHERE active;
"""

NOTIFICATION_SCHEMA = """
CREATE TABLE IF NOT EXISTS notification (
    id BIGSERIAL PRIMARY KEY,
    type INTEGER NOT NULL,
    text TEXT NOT NULL,
    date TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


async def apply(url: str, schema: str, label: str) -> None:
    conn = await asyncpg.connect(url)
    try:
        await conn.execute(schema)
        print(f"{label} schema applied")
    finally:
        await conn.close()


async def main():
    database_url = os.environ["DATABASE_URL"]
    notifications_url = os.environ.get("NOTIFICATIONS_DATABASE_URL") or database_url

    await apply(database_url, SCHEMA, "Primary")
    await apply(notifications_url, NOTIFICATION_SCHEMA, "Notification")


if __name__ == "__main__":
    asyncio.run(main())
