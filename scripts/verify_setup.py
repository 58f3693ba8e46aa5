#!/usr/bin/env python3
"""
Setup Verification Script

Checks configuration, the scheduling database, the conversation store
and the handover notification channels before starting the service.

Usage:
    python scripts/verify_setup.py
"""

import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv(project_root / ".env")

from app.config import settings  # noqa: E402

GREEN, RED, YELLOW, RESET = "\033[92m", "\033[91m", "\033[93m", "\033[0m"


def print_header(title: str) -> None:
    print(f"\n{'='*60}")
    print(f" {title}")
    print(f"{'='*60}")


def print_result(name: str, success: bool, message: str = "") -> None:
    status = "[PASS]" if success else "[FAIL]"
    color = GREEN if success else RED
    msg = f" - {message}" if message else ""
    print(f"  {color}{status}{RESET} {name}{msg}")


def _mask(value: str) -> str:
    return f"{value[:4]}...{value[-4:]}" if len(value) > 12 else "***"


def check_env_file() -> bool:
    env_path = project_root / ".env"
    exists = env_path.exists()
    print_result(".env file", exists, "Found" if exists else "Not found, using defaults and environment")
    return exists


def check_dependencies() -> bool:
    """Check that the runtime packages import."""
    required_packages = [
        "fastapi",
        "uvicorn",
        "pydantic",
        "pydantic_settings",
        "sqlalchemy",
        "asyncpg",
        "redis",
        "httpx",
    ]

    missing = []
    for package in required_packages:
        try:
            __import__(package)
        except ImportError:
            missing.append(package)

    if missing:
        print_result("Python packages", False, f"Missing: {', '.join(missing)}")
        return False
    print_result("Python packages", True, "All required packages installed")
    return True


def check_engine_settings() -> None:
    print_result("APP_ENV", True, settings.app_env)
    print_result("CONVERSATION_STORE_BACKEND", True, settings.conversation_store_backend)
    print_result("Memory max age", True, f"{settings.memory_max_age_hours}h")
    print_result("Default duration", True, f"{settings.default_duration_minutes} min")
    print_result("Search horizon", True, f"{settings.broad_search_days} days")
    print_result(
        "Handover throttle", True, f"{settings.handover_notify_throttle_minutes} min"
    )


def check_notification_channels() -> bool:
    """At least one handover channel must be fully configured."""
    twilio_ready = all([
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.twilio_from_number,
        settings.admin_phone,
    ])
    smtp_ready = bool(settings.smtp_host and settings.admin_email)

    if twilio_ready:
        print_result("SMS (Twilio)", True, f"Account {_mask(settings.twilio_account_sid)}")
    else:
        print_result("SMS (Twilio)", False, "Needs TWILIO_* and ADMIN_PHONE")

    if smtp_ready:
        print_result("E-mail (SMTP)", True, f"{settings.smtp_host}:{settings.smtp_port}")
    else:
        print_result("E-mail (SMTP)", False, "Needs SMTP_HOST and ADMIN_EMAIL")

    return twilio_ready or smtp_ready


async def check_postgres() -> bool:
    try:
        from app.infra.database import check_db_health
        healthy = await check_db_health()
        print_result("PostgreSQL", healthy, "Connection successful" if healthy else "Connection failed")
        return healthy
    except Exception as e:
        print_result("PostgreSQL", False, str(e)[:50])
        return False


async def check_redis() -> bool:
    try:
        from app.infra.redis import RedisClient, check_redis_health
        healthy = await check_redis_health()
        print_result("Redis", healthy, "Connection successful" if healthy else "Connection failed")
        await RedisClient.close()
        return healthy
    except Exception as e:
        print_result("Redis", False, str(e)[:50])
        return False


async def main() -> int:
    print("\n" + "="*60)
    print(" Scheduling Engine - Setup Verification")
    print("="*60)

    critical_failed = False
    warnings = False

    print_header("Environment File")
    check_env_file()

    print_header("Python Dependencies")
    if not check_dependencies():
        critical_failed = True

    print_header("Engine Settings")
    check_engine_settings()

    print_header("Service Connections")
    if not await check_postgres():
        critical_failed = True

    if settings.conversation_store_backend == "redis":
        if not await check_redis():
            critical_failed = True
    else:
        print_result("Redis", True, "Skipped - in-memory conversation store")

    print_header("Handover Notifications")
    if not check_notification_channels():
        warnings = True

    print_header("Summary")

    if critical_failed:
        print(f"\n  {RED}CRITICAL: Some required services failed.{RESET}")
        print("  Please fix the issues above before running the application.\n")
        return 1
    if warnings:
        print(f"\n  {YELLOW}WARNING: No handover notification channel configured.{RESET}")
        print("  Handovers will be recorded but the owner will not be alerted.\n")
        return 0

    print(f"\n  {GREEN}All checks passed!{RESET}")
    print("  You can start the application with:")
    print("    uvicorn app.main:app --reload\n")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
