#!/usr/bin/env python3
"""
Build script for snapzip.

"Building is just organized compilation. With extra steps."

Usage:
    python scripts/build.py [--clean] [--lint] [--type-check] [--test] [--build] [--all]
"""

import argparse
import shutil
import subprocess
import sys
from pathlib import Path

PACKAGE = "snapzip"


def run_command(cmd: list[str], description: str) -> bool:
    """Run a command and return success status."""
    print(f"\n{'='*60}")
    print(f"Running: {description}")
    print(f"{'='*60}")

    try:
        subprocess.run(cmd, check=True)
        print(f"✓ {description} completed successfully")
        return True
    except subprocess.CalledProcessError as e:
        print(f"✗ {description} failed with exit code {e.returncode}")
        return False
    except FileNotFoundError:
        print(f"✗ Command not found: {cmd[0]}")
        print("  Install the dev extra: pip install -e .[dev]")
        return False


def clean() -> bool:
    """Clean build artifacts."""
    print("\n" + "="*60)
    print("Cleaning build artifacts")
    print("="*60)

    for pattern in ["build", "dist", "*.egg-info", "__pycache__", ".pytest_cache", ".mypy_cache", ".ruff_cache"]:
        for path in Path(".").rglob(pattern):
            if path.is_dir():
                print(f"Removing: {path}")
                shutil.rmtree(path, ignore_errors=True)

    print("✓ Clean completed")
    return True


def lint() -> bool:
    """Run linter."""
    return run_command(["ruff", "check", PACKAGE, "tests"], "Linting with ruff")


def type_check() -> bool:
    """Run type checker."""
    return run_command(["mypy", PACKAGE], "Type checking with mypy")


def test() -> bool:
    """Run tests."""
    return run_command([sys.executable, "-m", "pytest", "-v"], "Running tests with pytest")


def build() -> bool:
    """Build the package."""
    return run_command([sys.executable, "-m", "build"], "Building package")


def main() -> int:
    """Main build script entry point."""
    parser = argparse.ArgumentParser(description="Build script for snapzip")
    parser.add_argument("--clean", action="store_true", help="Clean build artifacts")
    parser.add_argument("--lint", action="store_true", help="Run linter")
    parser.add_argument("--type-check", action="store_true", help="Run type checker")
    parser.add_argument("--test", action="store_true", help="Run tests")
    parser.add_argument("--build", action="store_true", help="Build package")
    parser.add_argument("--all", action="store_true", help="Run all checks and build")

    args = parser.parse_args()

    if not any(vars(args).values()):
        parser.print_help()
        return 0

    steps = [
        (args.clean, clean),
        (args.lint, lint),
        (args.type_check, type_check),
        (args.test, test),
        (args.build, build),
    ]

    success = True
    for requested, step in steps:
        if args.all or requested:
            success = step() and success

    print("\n" + "="*60)
    print("✓ All operations completed successfully" if success else "✗ Some operations failed")
    print("="*60)
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
