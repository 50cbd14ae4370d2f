#!/usr/bin/env python3
"""
Startup script for the Summer Camp Planner service
"""
import argparse
import sys
from pathlib import Path

# Add src to path for running from a checkout
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "src"))

import uvicorn

from summer_planner.config import settings, validate_current_config
from summer_planner.logging_config import setup_logging


def parse_args():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Summer Camp Planner service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run.py                     # Run in production mode
  python run.py --dev               # Run in development mode
  python run.py --port 8001         # Run on different port
  python run.py --check             # Check configuration
        """
    )

    parser.add_argument(
        '--dev', '--development',
        action='store_true',
        help='Run in development mode with auto-reload'
    )

    parser.add_argument(
        '--host',
        default=settings.host,
        help=f'Host to bind to (default: {settings.host})'
    )

    parser.add_argument(
        '--port', '-p',
        type=int,
        default=settings.port,
        help=f'Port to listen on (default: {settings.port})'
    )

    parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warning', 'error'],
        default='debug' if settings.DEBUG else 'info',
        help='Log level'
    )

    parser.add_argument(
        '--check', '-c',
        action='store_true',
        help='Check configuration and dependencies'
    )

    return parser.parse_args()


def check_dependencies():
    """Check if all required dependencies are available"""
    print("Checking dependencies...")

    missing_deps = []

    try:
        import fastapi
        print(f"✓ FastAPI {fastapi.__version__}")
    except ImportError:
        missing_deps.append("fastapi")

    try:
        import pydantic
        print(f"✓ Pydantic {pydantic.__version__}")
    except ImportError:
        missing_deps.append("pydantic")

    try:
        import httpx
        print(f"✓ httpx {httpx.__version__}")
    except ImportError:
        missing_deps.append("httpx")

    try:
        import structlog
        print(f"✓ structlog {structlog.__version__}")
    except ImportError:
        missing_deps.append("structlog")

    if missing_deps:
        print(f"\n❌ Missing dependencies: {', '.join(missing_deps)}")
        print("Install with: pip install -e .")
        return False

    print("\n✅ All dependencies satisfied")
    return True


def check_configuration():
    """Check configuration settings"""
    print("\nConfiguration check:")
    print(f"  App name: {settings.app_name}")
    print(f"  Version: {settings.app_version}")
    print(f"  Debug mode: {settings.DEBUG}")
    print(f"  Host: {settings.host}")
    print(f"  Port: {settings.port}")
    print(f"  Default season: {settings.DEFAULT_SCHOOL_END} to {settings.DEFAULT_SCHOOL_START}")
    print(f"  Store: {settings.STORE_URL or 'in-memory'}")

    report = validate_current_config()
    for category, issues in report["issues_by_category"].items():
        for issue in issues:
            print(f"  ! [{category}] {issue}")

    if report["valid"]:
        print("  No configuration issues ✓")

    return report["valid"]


def main():
    """Main entry point"""
    args = parse_args()

    setup_logging()

    if args.check:
        success = check_dependencies() and check_configuration()
        sys.exit(0 if success else 1)

    if not check_dependencies():
        sys.exit(1)

    check_configuration()

    is_dev = args.dev or settings.DEBUG

    print(f"\n🚀 Starting {settings.app_name}")
    print(f"   Mode: {'Development' if is_dev else 'Production'}")
    print(f"   URL: http://{args.host}:{args.port}")
    if is_dev:
        print(f"   Docs: http://{args.host}:{args.port}/docs")
    print()

    uvicorn.run(
        "summer_planner.main:app",
        host=args.host,
        port=args.port,
        reload=is_dev,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
