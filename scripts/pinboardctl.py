#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os
import sys
from datetime import datetime, timedelta, timezone

# to make scripts/pinboardctl.py behave as if ran from root of repo, set path before importing pinboard
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from pinboard.config import settings
from pinboard.db import init_db, make_engine, make_session_factory
from pinboard.errors import PinboardError
from pinboard.services import account_service
from pinboard.stores.backend import Backend, sql_backend

def _backend(url: str | None) -> Backend:
    # the cli never falls back to demo mode; it talks to the real database or fails
    engine = make_engine(url or settings.DATABASE_URL)
    init_db(engine)
    return sql_backend(make_session_factory(engine))

def cmd_init_db(args: argparse.Namespace) -> int:
    _backend(args.database_url)
    print("Database tables ensured.")
    return 0

def cmd_seed_user(args: argparse.Namespace) -> int:
    backend = _backend(args.database_url)
    existing = backend.users.find_by_email(account_service.normalize_email(args.email))
    if existing:
        print(f"User {args.email} already exists.")
        return 0
    user = account_service.register(backend.users, args.username, args.email, args.password)
    print(f"Seeded user: {user.username} (#{user.id})")
    return 0

def cmd_reset_password(args: argparse.Namespace) -> int:
    backend = _backend(args.database_url)
    try:
        user = account_service.reset_password(backend.users, args.email, args.password)
    except PinboardError as exc:
        print(f"{exc.detail}: {args.email}")
        return 1
    print(f"Password updated for user: {user.username}")
    return 0

def cmd_seed_demo(args: argparse.Namespace) -> int:
    backend = _backend(args.database_url)
    user = backend.users.find_by_email(account_service.normalize_email(args.email))
    if not user:
        print(f"User {args.email} not found.")
        return 1

    start = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(minutes=args.count)
    for i in range(1, args.count + 1):
        backend.pins.insert(
            title=f"Pin {i}",
            description=f"Sample pin number {i}",
            image=args.image,
            owner_id=user.id,
            owner_username=user.username,
            created_at=start + timedelta(minutes=i),
        )
    print(f"Seeded {args.count} pins for {user.username}")
    return 0

def main() -> int:
    parser = argparse.ArgumentParser(prog="pinboardctl")
    parser.add_argument("--database-url", default=None)
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_init = sub.add_parser("init-db")
    p_init.set_defaults(func=cmd_init_db)

    p_seed = sub.add_parser("seed-user")
    p_seed.add_argument("--username", required=True)
    p_seed.add_argument("--email", required=True)
    p_seed.add_argument("--password", required=True)
    p_seed.set_defaults(func=cmd_seed_user)

    p_reset = sub.add_parser("reset-password")
    p_reset.add_argument("--email", required=True)
    p_reset.add_argument("--password", required=True)
    p_reset.set_defaults(func=cmd_reset_password)

    p_demo = sub.add_parser("seed-demo")
    p_demo.add_argument("--email", required=True)
    p_demo.add_argument("--count", type=int, default=13)
    p_demo.add_argument("--image", default="/uploads/sample.jpg")
    p_demo.set_defaults(func=cmd_seed_demo)

    args = parser.parse_args()
    return args.func(args)

if __name__ == "__main__":
    raise SystemExit(main())
