import argparse
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

from store import ALLOWED_FILES, DocumentStore, StoreError, default_for

BASE_DIR = Path(__file__).resolve().parent


def cmd_show(store: DocumentStore, args) -> int:
    doc = store.read(args.name)
    print(json.dumps(doc, ensure_ascii=False, indent=2))
    return 0


def cmd_check(store: DocumentStore, args) -> int:
    failed = 0
    for name in store.names():
        if not os.path.exists(store.path_for(name)):
            print(f"{name}: MISSING (default will be created on first read)")
            continue
        try:
            store.load(name)
        except StoreError as e:
            failed += 1
            print(f"{name}: ERROR {e}")
            continue
        print(f"{name}: OK")
    return 1 if failed else 0


def cmd_import(store: DocumentStore, args) -> int:
    src = Path(args.file)
    try:
        with open(src, "r", encoding="utf-8") as f:
            doc = json.load(f)
    except (OSError, ValueError) as e:
        print(f"Cannot read {src}: {e}", file=sys.stderr)
        return 1
    store.write(args.name, doc)
    print(f"{args.name} updated successfully")
    return 0


def cmd_reset(store: DocumentStore, args) -> int:
    if not args.yes:
        print(f"Refusing to overwrite {args.name} without --yes", file=sys.stderr)
        return 2
    store.write(args.name, default_for(args.name))
    print(f"{args.name} reset to default")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Inspect and maintain the storefront JSON documents")
    ap.add_argument("--data", default=os.getenv("DATA_DIR", str(BASE_DIR / "data")), help="Data directory")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("show", help="Print a document (creates the default if missing)")
    p.add_argument("name", choices=ALLOWED_FILES)
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("check", help="Verify every document parses as JSON")
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("import", help="Replace a document with the contents of a JSON file")
    p.add_argument("name", choices=ALLOWED_FILES)
    p.add_argument("file")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("reset", help="Overwrite a document with its default value")
    p.add_argument("name", choices=ALLOWED_FILES)
    p.add_argument("--yes", action="store_true", help="Confirm the overwrite")
    p.set_defaults(func=cmd_reset)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    store = DocumentStore(args.data, development=True)
    try:
        return args.func(store, args)
    except StoreError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
