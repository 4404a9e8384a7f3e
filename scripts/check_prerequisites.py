#!/usr/bin/env python3
"""
Prerequisites checker for Form Discovery
Verifies all requirements before installation
"""

import platform
import subprocess
import sys
from pathlib import Path


def check_python():
    """Check Python version and installation."""
    print("🐍 Checking Python...")
    version = sys.version_info
    version_str = f"{version.major}.{version.minor}.{version.micro}"

    if version >= (3, 10):
        print(f"✅ Python {version_str} - OK")
        return True
    print(f"❌ Python {version_str} - Requires Python 3.10+")
    print("   Download from: https://python.org/downloads/")
    return False


def check_pip():
    """Check pip installation."""
    print("📦 Checking pip...")
    try:
        result = subprocess.run([sys.executable, "-m", "pip", "--version"],
                                capture_output=True, text=True, timeout=10)
        if result.returncode == 0:
            pip_version = result.stdout.split()[1]
            print(f"✅ pip {pip_version} - OK")
            return True
        print("❌ pip not available")
        return False
    except (OSError, subprocess.TimeoutExpired) as e:
        print(f"❌ pip check failed: {e}")
        return False


def check_playwright():
    """Check that the playwright package and its Chromium build are available."""
    print("🎭 Checking Playwright...")
    try:
        result = subprocess.run([sys.executable, "-m", "playwright", "--version"],
                                capture_output=True, text=True, timeout=20)
    except (OSError, subprocess.TimeoutExpired) as e:
        print(f"❌ Playwright check failed: {e}")
        return False
    if result.returncode != 0:
        print("❌ Playwright not installed")
        print("   Install with: pip install playwright")
        return False
    print(f"✅ {result.stdout.strip()} - OK")

    # --dry-run lists what would be downloaded without touching the cache
    dry_run = subprocess.run([sys.executable, "-m", "playwright", "install", "--dry-run", "chromium"],
                             capture_output=True, text=True, timeout=20)
    for line in dry_run.stdout.splitlines():
        if 'Install location' in line:
            location = Path(line.split(':', 1)[1].strip())
            if location.exists():
                print("✅ Chromium browser - OK")
                return True
    print("⚠️  Chromium browser not found")
    print("   Install with: playwright install chromium")
    return False


def check_claude_desktop():
    """Check if Claude Desktop is likely installed."""
    print("🤖 Checking Claude Desktop...")

    system = platform.system()
    if system == "Windows":
        claude_paths = [
            Path.home() / "AppData" / "Local" / "Claude" / "Claude.exe",
            Path.home() / "AppData" / "Roaming" / "Claude",
            Path("C:") / "Program Files" / "Claude",
        ]
    elif system == "Darwin":
        claude_paths = [
            Path("/Applications/Claude.app"),
            Path.home() / "Applications" / "Claude.app"
        ]
    else:
        claude_paths = [
            Path.home() / ".local" / "share" / "applications" / "claude.desktop",
            Path("/usr/share/applications/claude.desktop"),
        ]

    for path in claude_paths:
        if path.exists():
            print(f"✅ Claude Desktop found at: {path}")
            return True

    print("⚠️  Claude Desktop not detected (only needed for the MCP server)")
    print("   Download from: https://claude.ai/desktop")
    return False


def show_installation_summary(results):
    """Show summary and installation recommendations."""
    print("\n" + "=" * 60)
    print("📋 Prerequisites Summary")
    print("=" * 60)

    critical = ["python", "pip", "playwright"]
    critical_passed = all(results.get(req, False) for req in critical)

    print(f"\n🔥 Critical Requirements: {'✅ PASSED' if critical_passed else '❌ FAILED'}")
    for req in critical:
        status = "✅" if results.get(req, False) else "❌"
        print(f"   {status} {req.replace('_', ' ').title()}")

    status = "✅" if results.get("claude_desktop", False) else "⚠️ "
    print(f"\n⭐ Optional: {status} Claude Desktop")
    return critical_passed


def main():
    """Run all prerequisite checks."""
    print("🚀 Form Discovery - Prerequisites Check")
    print("=" * 60)
    print()

    results = {
        "python": check_python(),
        "pip": check_pip(),
        "playwright": check_playwright(),
        "claude_desktop": check_claude_desktop(),
    }

    ready = show_installation_summary(results)

    print("\n📝 Next Steps:")
    if ready:
        print("✅ Try it: form-discovery https://example.com/apply --headless")
        print("✅ Register with Claude Desktop: form-discovery-setup")
    else:
        print("❌ Fix the critical requirements above, then run this check again")

    return 0 if ready else 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n\n❌ Check cancelled by user")
        sys.exit(1)
