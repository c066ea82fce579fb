#!/usr/bin/env python3
"""
Version bumping script for tdx-quote.

Updates both pyproject.toml and tdx_quote.__version__ so they never drift.
Usage: python scripts/bump_version.py --version 1.2.3
"""

import argparse
import re
import sys
from pathlib import Path

try:
    import toml
except ImportError:
    print("Error: toml package not found. Install with: pip install toml")
    sys.exit(1)

ROOT = Path(__file__).resolve().parent.parent
PYPROJECT = ROOT / "pyproject.toml"
PACKAGE_INIT = ROOT / "src" / "tdx_quote" / "__init__.py"

VERSION_RE = re.compile(r"^\d+\.\d+\.\d+(?:-[a-zA-Z0-9-]+)*(?:\+[a-zA-Z0-9-]+)*$")


def replace_once(path: Path, pattern: str, new_version: str) -> None:
    content = path.read_text()
    new_content, count = re.subn(pattern, rf'\g<1>{new_version}\g<2>', content, count=1,
                                 flags=re.MULTILINE)
    if count == 0:
        print(f"Error: no version found in {path}")
        sys.exit(1)
    path.write_text(new_content)


def bump_version(new_version: str) -> None:
    if not VERSION_RE.match(new_version):
        print(f"Error: Invalid version format: {new_version}")
        print("Expected format: X.Y.Z or X.Y.Z-suffix")
        sys.exit(1)

    current_version = toml.load(PYPROJECT).get('project', {}).get('version', 'unknown')

    replace_once(PYPROJECT, r'^(version\s*=\s*")[^"]*(")', new_version)
    replace_once(PACKAGE_INIT, r'^(__version__\s*=\s*")[^"]*(")', new_version)

    print(f"Version updated: {current_version} → {new_version}")


def main():
    parser = argparse.ArgumentParser(description="Bump the tdx-quote version")
    parser.add_argument("--version", required=True, help="New version number")
    args = parser.parse_args()
    bump_version(args.version)


if __name__ == "__main__":
    main()
