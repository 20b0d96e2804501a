#!/usr/bin/env python3
"""
Setup Verification Script

Validates configuration and connections before running the application.
Run this after setting up your .env file.

Usage:
    python scripts/verify_setup.py
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Load environment variables
from dotenv import load_dotenv
load_dotenv()


def print_header(title: str) -> None:
    """Print section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print(f"{'='*60}")


def print_result(name: str, success: bool, message: str = "") -> None:
    """Print check result."""
    status = "[PASS]" if success else "[FAIL]"
    color = "\033[92m" if success else "\033[91m"
    reset = "\033[0m"
    msg = f" - {message}" if message else ""
    print(f"  {color}{status}{reset} {name}{msg}")


def mask(value: str) -> str:
    return f"{value[:4]}...{value[-4:]}" if len(value) > 12 else "***"


def check_env_file() -> bool:
    """Check if .env file exists."""
    env_path = project_root / ".env"
    exists = env_path.exists()
    if not exists:
        print_result(".env file", False, "Not found, using defaults and process environment")
    else:
        print_result(".env file", True, "Found")
    return exists


def check_dependencies() -> bool:
    """Check if required Python packages are installed."""
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


def check_settings() -> bool:
    """Load settings and show the booking configuration."""
    try:
        from app.config import get_settings
        settings = get_settings()
    except Exception as e:
        print_result("Settings", False, str(e)[:80])
        return False

    print_result("DATABASE_URL", True, settings.database_url.split("@")[-1])
    print_result("REDIS_URL", True, settings.redis_url)
    print_result("APP_ENV", True, settings.app_env)
    print_result(
        "Slots",
        True,
        f"{settings.slot_granularity_minutes} min, lead {settings.min_lead_minutes} min, "
        f"horizon {settings.slot_horizon_days} days, page of {settings.slot_page_size}",
    )

    if settings.slot_granularity_minutes <= 0 or settings.slot_page_size <= 0:
        print_result("Slot settings", False, "Granularity and page size must be positive")
        return False

    if settings.cellcast_api_key:
        print_result("CELLCAST_API_KEY", True, f"Set ({mask(settings.cellcast_api_key)})")
    else:
        print_result("CELLCAST_API_KEY", False, "Not set - replies will not be delivered")
    return True


async def check_postgres() -> bool:
    """Verify PostgreSQL connection."""
    try:
        from app.infra.database import check_db_health
        healthy = await check_db_health()

        if healthy:
            print_result("PostgreSQL", True, "Connection successful")
        else:
            print_result("PostgreSQL", False, "Connection failed")
        return healthy

    except Exception as e:
        print_result("PostgreSQL", False, str(e)[:50])
        return False


async def check_redis() -> bool:
    """Verify Redis connection."""
    try:
        from app.infra.redis import check_redis_health
        healthy = await check_redis_health()

        if healthy:
            print_result("Redis", True, "Connection successful")
        else:
            print_result("Redis", False, "Connection failed (de-duplication uses memory)")
        return healthy

    except Exception as e:
        print_result("Redis", False, str(e)[:50])
        return False


async def check_cellcast() -> bool:
    """Check the CellCast API key against the balance endpoint."""
    from app.config import get_settings
    settings = get_settings()

    if not settings.cellcast_api_key:
        print_result("CellCast API", False, "Skipped - API key not configured")
        return False

    try:
        import httpx

        async with httpx.AsyncClient(
            base_url=settings.cellcast_api_url,
            timeout=settings.sms_timeout_seconds,
            headers={"APPKEY": settings.cellcast_api_key},
        ) as client:
            response = await client.get("/get-balance")

        if response.status_code == 200:
            print_result("CellCast API", True, "Key accepted")
            return True
        print_result("CellCast API", False, f"Responded with {response.status_code}")
        return False

    except httpx.HTTPError as e:
        print_result("CellCast API", False, str(e)[:50])
        return False


async def main():
    """Run all verification checks."""
    print("\n" + "="*60)
    print(" Missed-Call Booking - Setup Verification")
    print("="*60)

    all_passed = True
    critical_failed = False

    print_header("Environment File")
    check_env_file()

    print_header("Python Dependencies")
    if not check_dependencies():
        all_passed = False
        critical_failed = True

    print_header("Settings")
    if not check_settings():
        all_passed = False
        critical_failed = True

    print_header("Service Connections")
    if not critical_failed:
        if not await check_postgres():
            all_passed = False
            critical_failed = True

        # Redis failure is non-critical (memory fallback)
        if not await check_redis():
            all_passed = False

        # Without SMS the engine still runs, replies are only logged
        if not await check_cellcast():
            all_passed = False

    print_header("Summary")

    if critical_failed:
        print("\n  \033[91mCRITICAL: Some required checks failed.\033[0m")
        print("  Please fix the issues above before running the application.")
        print()
        return 1
    elif not all_passed:
        print("\n  \033[93mWARNING: Some optional checks failed.\033[0m")
        print("  The application may run with limited functionality.")
        print()
        return 0
    else:
        print("\n  \033[92mAll checks passed!\033[0m")
        print("  Seed a practice with:")
        print("    python scripts/seed_practice.py \"Smile Dental\" --sms-number +61400000000")
        print("  Then start the application with:")
        print("    uvicorn app.main:app --reload")
        print()
        return 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
