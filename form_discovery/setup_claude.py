#!/usr/bin/env python3
"""
Setup script for the Form Discovery MCP Server
Installs the Playwright browser and registers the server with Claude Desktop
"""

import argparse
import json
import os
import shutil
import subprocess
import sys
from pathlib import Path

SERVER_NAME = "form-discovery"
MCP_EXECUTABLE = "form-discovery-mcp"

# Fix Windows encoding issues
if sys.platform == "win32":
    if hasattr(sys.stdout, 'reconfigure'):
        sys.stdout.reconfigure(encoding='utf-8')
    if hasattr(sys.stderr, 'reconfigure'):
        sys.stderr.reconfigure(encoding='utf-8')
    os.environ['PYTHONIOENCODING'] = 'utf-8'

EMOJI_REPLACEMENTS = {
    "🚀": "[*]",
    "📦": "[+]",
    "✅": "[OK]",
    "❌": "[FAIL]",
    "⚠️": "[WARN]",
    "🔧": "[TOOL]",
    "🎉": "[SUCCESS]",
    "📋": "[INFO]",
    "📁": "[FOLDER]",
    "🎭": "[BROWSER]",
}


def safe_print(text):
    """Print text with emoji fallback for Windows console issues."""
    try:
        print(text)
    except UnicodeEncodeError:
        fallback_text = text
        for emoji, replacement in EMOJI_REPLACEMENTS.items():
            fallback_text = fallback_text.replace(emoji, replacement)
        print(fallback_text)


def run_command(command, description):
    """Run a command and report the outcome."""
    safe_print(f"📦 {description}...")
    try:
        subprocess.run(command, check=True, capture_output=True, text=True)
        safe_print(f"✅ {description} completed successfully")
        return True
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        safe_print(f"❌ {description} failed: {e}")
        stderr = getattr(e, 'stderr', None)
        if stderr:
            safe_print(f"Error output: {stderr}")
        return False


def check_python():
    """Check Python installation."""
    python_version = sys.version_info
    version_str = f"{python_version.major}.{python_version.minor}.{python_version.micro}"
    if python_version >= (3, 10):
        safe_print(f"✅ Python {version_str} - OK")
        return True
    safe_print(f"❌ Python {version_str} - Requires Python 3.10+")
    return False


def claude_config_file() -> Path:
    """Location of claude_desktop_config.json for this platform."""
    if os.name == 'nt':
        config_dir = Path.home() / "AppData" / "Roaming" / "Claude"
    else:
        config_dir = Path.home() / "Library" / "Application Support" / "Claude"
    return config_dir / "claude_desktop_config.json"


def find_mcp_command() -> str:
    """Locate the installed form-discovery-mcp executable, falling back to its bare name."""
    mcp_command = shutil.which(MCP_EXECUTABLE)
    if mcp_command:
        return mcp_command

    exe_name = f"{MCP_EXECUTABLE}.exe" if os.name == 'nt' else MCP_EXECUTABLE
    python_dir = Path(sys.executable).parent
    # Same directory as the interpreter, then the Scripts subdirectory of a Windows venv
    for candidate in (python_dir / exe_name, python_dir / "Scripts" / exe_name):
        if candidate.exists():
            return str(candidate)

    safe_print(f"⚠️  Could not find {MCP_EXECUTABLE} executable, using command name only")
    return MCP_EXECUTABLE


def register_server(config_file: Path, mcp_command: str) -> bool:
    """Add or replace the form-discovery entry under mcpServers, keeping other servers."""
    config_file = Path(config_file)
    config_file.parent.mkdir(parents=True, exist_ok=True)

    existing_config = {}
    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                existing_config = json.load(f)
        except json.JSONDecodeError:
            safe_print("⚠️  Existing Claude config file is invalid, creating new one")

    existing_config.setdefault("mcpServers", {})
    existing_config["mcpServers"][SERVER_NAME] = {"command": mcp_command}

    try:
        with open(config_file, 'w', encoding='utf-8') as f:
            json.dump(existing_config, f, indent=2)
        safe_print(f"✅ {SERVER_NAME} MCP server configured")
        return True
    except OSError as e:
        safe_print(f"❌ Failed to configure {SERVER_NAME} MCP server: {e}")
        return False


def show_success_message(config_file):
    safe_print("\n" + "=" * 60)
    safe_print("🎉 Setup completed successfully!")
    safe_print("=" * 60)
    safe_print("")
    safe_print("📋 Next steps:")
    safe_print("1. Restart Claude Desktop application")
    safe_print("2. Look for the discover_form_fields tool in Claude Desktop")
    safe_print("3. Test with: 'Find all fields of the form at [URL]'")
    safe_print("")
    safe_print(f"📁 Config location: {config_file}")
    safe_print("=" * 60)


def main():
    """Main entry point for Claude Desktop setup."""
    parser = argparse.ArgumentParser(description='Form Discovery - Claude Desktop Setup')
    parser.add_argument('--check-only', action='store_true',
                        help='Only check prerequisites without performing setup')
    args = parser.parse_args()

    safe_print("🚀 Form Discovery - Claude Desktop Setup")
    safe_print("=" * 60)

    safe_print("\n🔧 Checking prerequisites...")
    python_ok = check_python()
    if args.check_only:
        safe_print(f"\n{'✅' if python_ok else '❌'} Python 3.10+: {'PASSED' if python_ok else 'FAILED'}")
        sys.exit(0 if python_ok else 1)

    if not python_ok:
        safe_print("\n❌ SETUP FAILED: Python 3.10+ is required")
        safe_print("Please install Python 3.10 or higher from https://python.org/")
        sys.exit(1)

    safe_print("\n🎭 Installing Playwright browsers...")
    if not run_command([sys.executable, "-m", "playwright", "install", "chromium"],
                       "Installing Playwright browser"):
        safe_print("⚠️  Playwright browser installation skipped (may already be installed)")

    safe_print("\n🔧 Configuring Claude Desktop MCP server...")
    config_file = claude_config_file()
    mcp_command = find_mcp_command()
    if not register_server(config_file, mcp_command):
        safe_print(f"\n❌ SETUP FAILED: Could not configure {SERVER_NAME} MCP server")
        sys.exit(1)

    show_success_message(config_file)


if __name__ == "__main__":
    main()
