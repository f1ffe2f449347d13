"""Tasktrack CLI — talk to a running Tasktrack API from the terminal.

Usage:
    tasktrack register "Ada" ada@example.com         # Create an account, print a token
    tasktrack login ada@example.com                  # Print a fresh token
    tasktrack me                                     # Who am I?
    tasktrack tasks list --status todo --search bug  # List tasks (own, or all for admins)
    tasktrack tasks create "Fix login bug"           # Create a task
    tasktrack tasks update <id> --status done        # Partial update
    tasktrack tasks delete <id>                      # Delete
    tasktrack stats                                  # Platform stats (admin)
    tasktrack serve                                  # Run the API with uvicorn

The token comes from --token or TASKTRACK_TOKEN.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from tasktrack import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"
API_PREFIX = "/api/v1"


def _api_url() -> str:
    return os.environ.get("TASKTRACK_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Tasktrack API."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _require_token(token: Optional[str]) -> str:
    tok = token or os.environ.get("TASKTRACK_TOKEN")
    if not tok:
        click.secho(
            "Error: --token required (or set TASKTRACK_TOKEN env var)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return tok


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _status_color(status: str) -> str:
    return {"todo": "white", "in-progress": "yellow", "done": "green"}.get(status, "white")


async def _request(
    method: str,
    path: str,
    token: Optional[str] = None,
    **kwargs,
) -> dict:
    """Call the API and return the JSON body, or exit with the error message."""
    async with _client(token) as client:
        try:
            resp = await client.request(method, f"{API_PREFIX}{path}", **kwargs)
        except httpx.HTTPError as e:
            click.secho(f"Error: cannot reach {_api_url()} ({e})", fg="red", err=True)
            sys.exit(1)
    try:
        body = resp.json()
    except ValueError:
        body = {"success": False, "message": resp.text}
    if resp.status_code >= 400:
        click.secho(
            f"Error {resp.status_code}: {body.get('message', 'request failed')}",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return body


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="tasktrack")
def main():
    """Tasktrack — role-aware task tracking from the command line."""


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@main.command()
@click.argument("name")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--bootstrap-key", help="Register an admin with this bootstrap key")
def register(name: str, email: str, password: str, bootstrap_key: Optional[str]):
    """Create an account and print its token."""
    path, headers = "/auth/register", {}
    if bootstrap_key:
        path, headers = "/auth/register-admin", {"x-admin-bootstrap-key": bootstrap_key}
    body = _run(_request(
        "POST", path,
        json={"name": name, "email": email, "password": password},
        headers=headers,
    ))
    user = body["data"]["user"]
    click.secho(f"Registered {user['email']} ({user['role']})", fg="green")
    click.echo(body["data"]["token"])


@main.command()
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True)
def login(email: str, password: str):
    """Log in and print a token (export it as TASKTRACK_TOKEN)."""
    body = _run(_request("POST", "/auth/login", json={"email": email, "password": password}))
    click.echo(body["data"]["token"])


@main.command()
@click.option("--token", help="Bearer token (or TASKTRACK_TOKEN)")
def me(token: Optional[str]):
    """Show the current user."""
    body = _run(_request("GET", "/auth/me", _require_token(token)))
    click.echo(_pretty_json(body["data"]))


@main.command()
@click.option("--token", help="Bearer token (or TASKTRACK_TOKEN)")
def stats(token: Optional[str]):
    """Platform stats (admin only)."""
    body = _run(_request("GET", "/admin/stats", _require_token(token)))
    data = body["data"]
    click.echo(f"users: {data['users']}  admins: {data['admins']}  tasks: {data['tasks']}")


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@main.group()
def tasks():
    """Create, list, update and delete tasks."""


@tasks.command("list")
@click.option("--token", help="Bearer token (or TASKTRACK_TOKEN)")
@click.option("--status", type=click.Choice(["todo", "in-progress", "done"]))
@click.option("--search", help="Case-insensitive title substring")
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--limit", type=int, default=10, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def list_tasks(token, status, search, page, limit, as_json):
    """List tasks."""
    params = {"page": page, "limit": limit}
    if status:
        params["status"] = status
    if search:
        params["search"] = search
    body = _run(_request("GET", "/tasks", _require_token(token), params=params))

    if as_json:
        click.echo(_pretty_json(body))
        return

    rows = body["data"]
    if not rows:
        click.echo("No tasks.")
        return
    _print_table(rows, [("ID", "id", 36), ("STATUS", "status", 11), ("TITLE", "title", 50)])
    meta = body["meta"]
    click.secho(
        f"\npage {meta['page']}/{max(meta['totalPages'], 1)} · {meta['total']} total · from {body['source']}",
        dim=True,
    )


@tasks.command("show")
@click.argument("task_id")
@click.option("--token", help="Bearer token (or TASKTRACK_TOKEN)")
def show_task(task_id: str, token: Optional[str]):
    """Show one task."""
    body = _run(_request("GET", f"/tasks/{task_id}", _require_token(token)))
    click.echo(_pretty_json(body["data"]))


@tasks.command("create")
@click.argument("title")
@click.option("--description", "-d", default="")
@click.option("--status", type=click.Choice(["todo", "in-progress", "done"]), default="todo")
@click.option("--token", help="Bearer token (or TASKTRACK_TOKEN)")
def create_task(title: str, description: str, status: str, token: Optional[str]):
    """Create a task."""
    body = _run(_request(
        "POST", "/tasks", _require_token(token),
        json={"title": title, "description": description, "status": status},
    ))
    task = body["data"]
    click.secho(f"Created {task['id']}", fg="green")


@tasks.command("update")
@click.argument("task_id")
@click.option("--title")
@click.option("--description", "-d")
@click.option("--status", type=click.Choice(["todo", "in-progress", "done"]))
@click.option("--token", help="Bearer token (or TASKTRACK_TOKEN)")
def update_task(task_id, title, description, status, token):
    """Update a task's title, description or status."""
    changes = {
        k: v
        for k, v in {"title": title, "description": description, "status": status}.items()
        if v is not None
    }
    if not changes:
        click.secho("Nothing to update.", fg="yellow", err=True)
        sys.exit(1)
    body = _run(_request("PUT", f"/tasks/{task_id}", _require_token(token), json=changes))
    task = body["data"]
    click.echo(f"{task['id']}  ", nl=False)
    click.secho(task["status"], fg=_status_color(task["status"]), nl=False)
    click.echo(f"  {task['title']}")


@tasks.command("delete")
@click.argument("task_id")
@click.option("--token", help="Bearer token (or TASKTRACK_TOKEN)")
@click.confirmation_option(prompt="Delete this task?")
def delete_task(task_id: str, token: Optional[str]):
    """Delete a task."""
    _run(_request("DELETE", f"/tasks/{task_id}", _require_token(token)))
    click.secho(f"Deleted {task_id}", fg="green")


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind host (default: TASKTRACK_HOST)")
@click.option("--port", type=int, default=None, help="Bind port (default: TASKTRACK_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from tasktrack.config import settings

    uvicorn.run(
        "tasktrack.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


if __name__ == "__main__":
    main()
