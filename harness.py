"""
Interactive harness for testing tasks-timeline without MCP integration.

Usage:
    python harness.py <VAULT_ROOT> [--exclude .git,.obsidian] [--options options.yaml]

Runs a refresh and a quick smoke test on startup, then drops you into an
interactive REPL where you can call service methods directly.
"""

import json
import sys
from collections import Counter
from pathlib import Path

# Add src/ to path so imports work without installing
sys.path.insert(0, str(Path(__file__).parent / "src"))

from tasks_timeline.cache.service import TaskService
from tasks_timeline.models.options import OptionsError, load_options
from tasks_timeline.vault.store import LocalVault


def _print_task(t) -> None:
    tags_str = " ".join(t.tags)
    due = f"  due={t.due.date().isoformat()}" if t.due else ""
    print(f"  [{t.status:10s}] {t.visual.strip()}{due}  {tags_str}")
    print(f"               {t.id}")


def smoke_test(service: TaskService) -> None:
    """Quick automated checks after the initial refresh."""
    st = service.status()
    print("\n=== Smoke Test ===")
    print(f"  Vault root:       {st['vault_root']}")
    print(f"  Documents:        {st['documents_indexed']}")
    print(f"  Tasks indexed:    {st['tasks_indexed']}")
    print(f"  Files with tasks: {st['files_with_tasks']}")
    print(f"  Exclude dirs:     {st['exclude_dirs']}")
    if st["last_errors"]:
        print(f"  Errors:           {len(st['last_errors'])}")
        for err in st["last_errors"][:5]:
            print(f"    {err}")

    tasks = service.tasks()
    counts = Counter(t.status for t in tasks)
    print("\n  By status:")
    for status in service.get_options().task_status_order:
        print(f"    {status:10s} {counts.get(status, 0)}")

    print("\n  Timeline head (first 10):")
    for t in tasks[:10]:
        _print_task(t)
    if len(tasks) > 10:
        print(f"  ... and {len(tasks) - 10} more")

    print("\n=== Smoke Test Complete ===\n")


def repl(service: TaskService) -> None:
    """Simple REPL for interactive exploration."""
    print("Interactive mode. Type 'help' for commands, 'quit' to exit.\n")

    commands = {
        "help":     "Show this help",
        "status":   "Show cache status",
        "refresh":  "Re-scan the vault. Usage: refresh [path_prefix]",
        "tasks":    "List tasks. Usage: tasks [status=overdue] [tag=#work] [limit=20]",
        "task":     "Full detail for a task. Usage: task <id>",
        "files":    "List documents contributing tasks",
        "find":     "Search task text. Usage: find <substring>",
        "options":  "Show options",
        "set":      "Change an option. Usage: set <name>=<json value>",
        "quit":     "Exit",
    }

    while True:
        try:
            line = input("tasks-timeline> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not line:
            continue

        parts = line.split()
        cmd = parts[0].lower()

        if cmd == "quit" or cmd == "exit":
            break

        elif cmd == "help":
            for k, v in commands.items():
                print(f"  {k:12s} {v}")

        elif cmd == "status":
            print(json.dumps(service.status(), indent=2, default=str))

        elif cmd == "refresh":
            include = parts[1:] or None
            batch = service.refresh(include_paths=include)
            print(f"Refreshed {len(batch)} tasks")

        elif cmd == "tasks":
            kwargs = {"limit": 20}
            for arg in parts[1:]:
                if "=" in arg:
                    k, v = arg.split("=", 1)
                    kwargs[k] = int(v) if k == "limit" else v
            results = service.tasks()
            if "status" in kwargs:
                results = [t for t in results if t.status == kwargs["status"]]
            if "tag" in kwargs:
                results = [t for t in results if kwargs["tag"] in t.tags]
            print(f"Found {len(results)} tasks:")
            for t in results[: kwargs["limit"]]:
                _print_task(t)

        elif cmd == "task":
            if len(parts) < 2:
                print("Usage: task <id>")
                continue
            t = service.get_task(" ".join(parts[1:]))
            if t:
                print(json.dumps(t.to_dict(), indent=2))
            else:
                print(f"  Task '{parts[1]}' not found")

        elif cmd == "files":
            for path in service.files():
                print(f"  {path}")

        elif cmd == "find":
            if len(parts) < 2:
                print("Usage: find <substring>")
                continue
            needle = " ".join(parts[1:]).lower()
            matches = [t for t in service.tasks() if needle in t.visual.lower()]
            print(f"Found {len(matches)} matching tasks:")
            for t in matches:
                _print_task(t)

        elif cmd == "options":
            print(json.dumps(service.get_options().model_dump(), indent=2))

        elif cmd == "set":
            if len(parts) < 2 or "=" not in parts[1]:
                print("Usage: set <name>=<json value>")
                continue
            name, raw = " ".join(parts[1:]).split("=", 1)
            try:
                value = json.loads(raw)
            except json.JSONDecodeError:
                value = raw
            try:
                service.update_options({name.strip(): value})
                print("  OK (takes effect on next refresh)")
            except OptionsError as e:
                print(f"  Error: {e}")

        else:
            print(f"Unknown command: {cmd}. Type 'help' for available commands.")


def main():
    if len(sys.argv) < 2:
        print("Usage: python harness.py <VAULT_ROOT> [--exclude .git,.obsidian] [--options FILE]")
        sys.exit(1)

    vault_root = Path(sys.argv[1]).resolve()
    if not vault_root.is_dir():
        print(f"Error: {vault_root} is not a directory")
        sys.exit(1)

    exclude_dirs = {".git", ".obsidian", "node_modules", ".trash"}
    options = None
    args = sys.argv[2:]
    for i, arg in enumerate(args):
        if arg == "--exclude" and i + 1 < len(args):
            exclude_dirs = set(args[i + 1].split(","))
        elif arg == "--options" and i + 1 < len(args):
            options = load_options(Path(args[i + 1]))

    print(f"Scanning vault: {vault_root}")
    print(f"Exclude dirs: {exclude_dirs}")

    service = TaskService(LocalVault(vault_root, exclude_dirs), options=options)
    service.start()
    try:
        service.refresh()
        smoke_test(service)
        repl(service)
    finally:
        service.stop()

    print("Done.")


if __name__ == "__main__":
    main()
