#!/usr/bin/env python3
"""
Task Board CLI
--------------
Thin command-line client for the board server's JSON API.

Usage:
    python board_cli.py list [status]
    python board_cli.py get <id>
    python board_cli.py add "Fix login bug" -p high -s todo -a alice -t bug,auth
    python board_cli.py update <id> '{"title": "New title"}'
    python board_cli.py move <id> in_progress [--order 2]
    python board_cli.py delete <id>
    python board_cli.py stats
    python board_cli.py search <query>
    python board_cli.py clear-done
    python board_cli.py board

Environment:
    TASKBOARD_URL  Base URL (default: http://localhost:3000)
"""

import argparse
import json
import os
import sys
from typing import Any, Dict, List, Optional

import requests

DEFAULT_URL = "http://localhost:3000"
TIMEOUT = 10

STATUS_LABELS = {
    "backlog": ("📋", "BACKLOG"),
    "todo": ("📝", "TO DO"),
    "in_progress": ("⚡", "IN PROGRESS"),
    "review": ("🔍", "REVIEW"),
    "done": ("✅", "DONE"),
}

PRIORITY_ICONS = {
    "critical": "🔴",
    "high": "🟡",
    "medium": "🔵",
    "low": "🟢",
}


class CLIError(Exception):
    """Raised when the server rejects a request or cannot be reached."""
    pass


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# HTTP client
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BoardClient:
    """Calls the board API and unwraps JSON responses."""

    def __init__(self, base_url: str = DEFAULT_URL, session: Optional[requests.Session] = None):
        self.api = f"{base_url.rstrip('/')}/api"
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            r = self.session.request(method, f"{self.api}{path}", timeout=TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise CLIError(f"Cannot reach {self.api}: {e}")
        if not r.ok:
            try:
                message = r.json().get("error", r.reason)
            except ValueError:
                message = r.reason
            raise CLIError(f"HTTP {r.status_code}: {message}")
        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    def list_tasks(self, **filters) -> List[Dict[str, Any]]:
        params = {k: v for k, v in filters.items() if v}
        return self._request("GET", "/tasks", params=params)

    def get_task(self, task_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/tasks/{task_id}")

    def create_task(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/tasks", json=fields)

    def update_task(self, task_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PATCH", f"/tasks/{task_id}", json=fields)

    def move_task(self, task_id: str, status: str, order: Optional[int] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"status": status}
        if order is not None:
            body["order"] = order
        return self._request("POST", f"/tasks/{task_id}/move", json=body)

    def delete_task(self, task_id: str) -> None:
        self._request("DELETE", f"/tasks/{task_id}")

    def stats(self) -> Dict[str, Any]:
        return self._request("GET", "/stats")

    def clear_done(self) -> int:
        return self._request("DELETE", "/tasks", params={"status": "done"})["deleted"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Formatting
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def short_id(task_id: str) -> str:
    return f"{task_id[:8]}..."


def format_task_line(task: Dict[str, Any]) -> str:
    """Two-line summary used by list and search."""
    priority = task.get("priority", "medium").upper()
    assignee = task.get("assignee") or "Unassigned"
    return (
        f"  [{priority:8s}] {task.get('title', 'Untitled')}\n"
        f"           Status: {task.get('status', 'unknown')} | "
        f"Assignee: {assignee} | ID: {short_id(task.get('id', '?'))}"
    )


def format_stats(stats: Dict[str, Any]) -> str:
    by_status = stats["byStatus"]
    by_priority = stats["byPriority"]
    lines = [f"  📊 Total: {stats['total']} tasks", ""]
    for status, (icon, label) in STATUS_LABELS.items():
        lines.append(f"  {icon} {label.title() + ':':13s}{by_status.get(status, 0)}")
    lines.append("")
    lines.append("  " + "  ".join(
        f"{PRIORITY_ICONS[p]} {p.title()}: {by_priority.get(p, 0)}"
        for p in ("critical", "high", "medium", "low")
    ))
    lines.append(f"  ⏰ Done (24h): {stats['recentlyCompleted']}")
    return "\n".join(lines)


def format_board(tasks: List[Dict[str, Any]]) -> str:
    """Text board: one section per column, tasks in the order given."""
    lines = ["═" * 59, "  Task Board", "═" * 59, ""]
    for status, (icon, label) in STATUS_LABELS.items():
        column = [t for t in tasks if t.get("status") == status]
        lines.append(f"{icon} {label} ({len(column)})")
        lines.append("─" * 39)
        if not column:
            lines.append("  (empty)")
        for t in column:
            marker = PRIORITY_ICONS.get(t.get("priority"), "⚪")
            lines.append(f"  {marker} {t['title']}")
            lines.append(f"     └─ {t.get('assignee') or '?'} | {short_id(t['id'])}")
        lines.append("")
    return "\n".join(lines)


def parse_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Commands
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def run(args, client: BoardClient) -> str:
    """Execute one parsed command and return the text to print."""
    if args.command == "list":
        tasks = client.list_tasks(status=args.status)
        return "\n\n".join(format_task_line(t) for t in tasks) or "  No tasks found."

    if args.command == "get":
        return json.dumps(client.get_task(args.id), indent=2, ensure_ascii=False)

    if args.command == "add":
        fields = {
            "title": args.title,
            "description": args.description,
            "status": args.status,
            "priority": args.priority,
            "assignee": args.assignee,
            "tags": parse_tags(args.tags),
        }
        task = client.create_task(fields)
        return (
            f"✓ Task created: {task['title']}\n"
            f"  ID: {task['id']}\n"
            f"  Status: {task['status']} | Priority: {task['priority']} | "
            f"Assignee: {task['assignee']}"
        )

    if args.command == "update":
        try:
            fields = json.loads(args.json)
        except json.JSONDecodeError as e:
            raise CLIError(f"Invalid JSON: {e}")
        return json.dumps(client.update_task(args.id, fields), indent=2, ensure_ascii=False)

    if args.command == "move":
        task = client.move_task(args.id, args.status, args.order)
        icon = STATUS_LABELS.get(task["status"], ("❓", ""))[0]
        return f"✓ Moved: {task['title']} → {icon} {task['status']}"

    if args.command == "delete":
        client.delete_task(args.id)
        return "✓ Task deleted"

    if args.command == "stats":
        return format_stats(client.stats())

    if args.command == "search":
        tasks = client.list_tasks(search=args.query)
        if not tasks:
            return "  No results found."
        body = "\n\n".join(format_task_line(t) for t in tasks)
        return f"  Found {len(tasks)} result(s):\n\n{body}"

    if args.command == "clear-done":
        return f"✓ Cleared {client.clear_done()} completed task(s)"

    if args.command == "board":
        return format_board(client.list_tasks())

    raise CLIError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Task Board CLI")
    ap.add_argument("--url", default=os.environ.get("TASKBOARD_URL", DEFAULT_URL),
                    help="Board server base URL")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List tasks, optionally by status")
    p.add_argument("status", nargs="?", default=None)

    p = sub.add_parser("get", help="Show one task")
    p.add_argument("id")

    p = sub.add_parser("add", help="Create a task")
    p.add_argument("title")
    p.add_argument("-p", "--priority", default="medium")
    p.add_argument("-s", "--status", default="backlog")
    p.add_argument("-a", "--assignee", default="")
    p.add_argument("-d", "--description", default="")
    p.add_argument("-t", "--tags", default="", help="Comma-separated tags")

    p = sub.add_parser("update", help="Update a task from a JSON object")
    p.add_argument("id")
    p.add_argument("json")

    p = sub.add_parser("move", help="Move a task to another column")
    p.add_argument("id")
    p.add_argument("status")
    p.add_argument("--order", type=int, default=None)

    p = sub.add_parser("delete", help="Delete a task")
    p.add_argument("id")

    sub.add_parser("stats", help="Board statistics")

    p = sub.add_parser("search", help="Search titles and descriptions")
    p.add_argument("query")

    sub.add_parser("clear-done", help="Remove completed tasks")
    sub.add_parser("board", help="Show the full board")
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    client = BoardClient(args.url)
    try:
        print(run(args, client))
    except CLIError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
