#!/usr/bin/env python3
"""
PasswordForge -- turn a memorable phrase into a hard-to-guess password.

Usage:
  python main.py "Blue Harbor"
  python main.py "Blue Harbor" "Night Train"
  python main.py "Blue Harbor" --count 3
  python main.py "Blue Harbor" --table converter
  python main.py "Blue Harbor" --table ./my-table.json
  python main.py "Blue Harbor" --show-substitution
  python main.py "Blue Harbor" --json
  python main.py --list-tables

Environment variables:
  SUBSTITUTION_TABLE   Default table when --table is not given (built-in name or JSON path).
"""

import argparse
import json
import os
import random
import sys
from typing import Optional

from core.tables import BUILTIN_TABLES, SubstitutionTable, load_table
from core.transform import TransformEngine


def _resolve_table(spec: Optional[str]) -> Optional[SubstitutionTable]:
    """Load the requested table, printing a friendly error instead of a traceback."""
    spec = spec or os.environ.get("SUBSTITUTION_TABLE") or "classic"
    try:
        return load_table(spec)
    except KeyError as e:
        print(f"  [!] {e.args[0]}", file=sys.stderr)
    except (OSError, ValueError) as e:
        print(f"  [!] Could not load table '{spec}': {e}", file=sys.stderr)
    return None


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="passwordforge",
        description="Forge passwords from memorable phrases.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py "Blue Harbor"
  python main.py "Blue Harbor" --count 3 --table converter
  python main.py "Blue Harbor" --json
        """,
    )
    parser.add_argument("phrases", nargs="*", metavar="PHRASE", help="One or more names or phrases to forge")
    parser.add_argument(
        "--table",
        metavar="NAME|PATH",
        help=f"Substitution table: {', '.join(BUILTIN_TABLES)}, or a JSON file path (default: classic)",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=1,
        metavar="N",
        help="Number of passwords to forge per phrase (default: 1)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed the random source for reproducible output (NOT for real passwords)",
    )
    parser.add_argument(
        "--show-substitution",
        action="store_true",
        help="Also print the substituted phrase before padding and shuffling",
    )
    parser.add_argument("--json", action="store_true", help="Output structured JSON")
    parser.add_argument("--list-tables", action="store_true", help="List built-in substitution tables and exit")
    args = parser.parse_args(argv)

    if args.list_tables:
        for name, table in BUILTIN_TABLES.items():
            case = "case-sensitive" if table.case_sensitive else "case-insensitive"
            print(f"  {name:<10} {len(table):>3} entries  {case}")
        return 0

    if not args.phrases:
        parser.print_help()
        return 0

    if args.count < 1:
        print("  [!] --count must be at least 1.", file=sys.stderr)
        return 2

    table = _resolve_table(args.table)
    if table is None:
        return 2

    rng = random.Random(args.seed) if args.seed is not None else None
    engine = TransformEngine(table, rng=rng)

    results = []
    for phrase in args.phrases:
        results.append(
            {
                "phrase": phrase,
                "substituted": engine.substitute(phrase),
                "passwords": [engine.transform(phrase) for _ in range(args.count)],
            }
        )

    if args.json:
        print(json.dumps({"table": table.name, "results": results}, indent=2, ensure_ascii=False))
        return 0

    for item in results:
        print(f"\n  {item['phrase']}")
        if args.show_substitution:
            print(f"    substituted: {item['substituted']}")
        for password in item["passwords"]:
            print(f"    {password}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
