#!/usr/bin/env python3
from __future__ import annotations

import os
import sys
from typing import Any, Dict, Iterable, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from client import ApiClient, ApiError, API_BASE, TIMEOUT
from listing import MODULES, RecordModule

# -----------------------------------------------------------------------------
# Globals / Config
# -----------------------------------------------------------------------------
console = Console()

TOKEN_ENV = "SCHOOLREC_TOKEN"


def get_client(ctx: click.Context) -> ApiClient:
    obj = ctx.ensure_object(dict)
    if "client" not in obj:
        api = ApiClient(base_url=obj.get("api_base") or API_BASE, timeout=TIMEOUT)
        token = os.getenv(TOKEN_ENV)
        if token:
            api.session.issue({}, token)
        obj["client"] = api
        ctx.call_on_close(api.close)
    return obj["client"]


def parse_pairs(pairs: Iterable[str]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"expected field=value, got {pair!r}")
        key, value = pair.split("=", 1)
        out[key.strip()] = value
    return out


def show_json(obj: Any) -> None:
    console.print_json(data=obj)


def show_table(items: list[dict[str, Any]], columns: Iterable[str], title: Optional[str] = None) -> None:
    t = Table(title=title, show_lines=False)
    columns = list(columns)
    for col in columns:
        t.add_column(col)
    for it in items:
        t.add_row(*[str(it.get(c, "")) for c in columns])
    console.print(t)


def fail(message: str) -> None:
    console.print(f"[red]{message}[/]")
    sys.exit(1)


def load_module(ctx: click.Context, name: str) -> RecordModule:
    module = RecordModule(get_client(ctx), MODULES[name])
    module.load()
    if module.alert:
        fail(module.alert)
    return module


module_argument = click.argument("module", type=click.Choice(sorted(MODULES)))


# -----------------------------------------------------------------------------
# Root
# -----------------------------------------------------------------------------
@click.group(help="School records command line")
@click.option("--api-base", default=None, help=f"API base URL (default {API_BASE})")
@click.pass_context
def cli(ctx: click.Context, api_base: Optional[str]) -> None:
    ctx.ensure_object(dict)
    if api_base:
        ctx.obj["api_base"] = api_base


@cli.command("health", help="Check the API and database")
@click.pass_context
def health(ctx: click.Context) -> None:
    try:
        show_json(get_client(ctx).health())
    except ApiError as e:
        fail(str(e))


@cli.command("dashboard", help="Show record counts and today's attendance rate")
@click.pass_context
def dashboard(ctx: click.Context) -> None:
    try:
        data = get_client(ctx).dashboard()
    except ApiError as e:
        fail(str(e))
    t = Table(title=f"Dashboard {data.get('date', '')}")
    t.add_column("metric")
    t.add_column("value", justify="right")
    for key, value in data.items():
        if key != "date":
            t.add_row(key, f"{value}%" if key == "attendanceRate" else str(value))
    console.print(t)


# -----------------------------------------------------------------------------
# Auth
# -----------------------------------------------------------------------------
@cli.command("signup", help="Create an account")
@click.option("--full-name", prompt=True)
@click.option("--organization", prompt=True)
@click.option("--email", prompt=True)
@click.option("--mobile", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.pass_context
def signup(ctx: click.Context, full_name: str, organization: str, email: str, mobile: str, password: str) -> None:
    try:
        body = get_client(ctx).signup(full_name, organization, email, mobile, password)
    except ApiError as e:
        fail(str(e))
    console.print(f"[green]{body['message']}[/] ✅")


@cli.command("login", help="Log in and print a bearer token")
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
@click.pass_context
def login(ctx: click.Context, email: str, password: str) -> None:
    api = get_client(ctx)
    try:
        session = api.login(email, password)
    except ApiError as e:
        fail(str(e))
    console.print(f"[green]Logged in[/] as [cyan]{session.email}[/] ✅")
    console.print(f"export {TOKEN_ENV}={session.token}")


@cli.command("logout", help="Drop the current session")
@click.pass_context
def logout(ctx: click.Context) -> None:
    get_client(ctx).logout()
    console.print(f"[green]Logged out[/]; unset {TOKEN_ENV} to forget the token")


@cli.command("whoami", help="Show the user behind the current token")
@click.pass_context
def whoami(ctx: click.Context) -> None:
    api = get_client(ctx)
    if not api.session.is_authenticated:
        fail(f"Not authenticated (set {TOKEN_ENV})")
    try:
        user = api.me()
    except ApiError as e:
        fail(str(e))
    console.print(Panel.fit("\n".join(f"{k}: {v}" for k, v in user.items()), title="user"))


@cli.command("change-password", help="Change the password of the logged-in user")
@click.option("--current-password", prompt=True, hide_input=True)
@click.option("--new-password", prompt=True, hide_input=True)
@click.option("--confirm-password", prompt=True, hide_input=True)
@click.pass_context
def change_password(ctx: click.Context, current_password: str, new_password: str, confirm_password: str) -> None:
    api = get_client(ctx)
    if not api.session.is_authenticated:
        fail(f"Not authenticated (set {TOKEN_ENV})")
    try:
        body = api.change_password(current_password, new_password, confirm_password)
    except ApiError as e:
        fail(str(e))
    console.print(f"[green]{body['message']}[/] ✅")


@cli.command("user", help="Look up an account by email")
@click.argument("email")
@click.pass_context
def show_user(ctx: click.Context, email: str) -> None:
    try:
        user = get_client(ctx).user(email)
    except ApiError as e:
        fail(str(e))
    console.print(Panel.fit("\n".join(f"{k}: {v}" for k, v in user.items()), title="user"))


# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------
SETTINGS_SECTIONS = ("organization", "academic", "notifications")


@cli.group("settings", help="School settings")
def settings_group() -> None:
    pass


@settings_group.command("show", help="Print all settings")
@click.pass_context
def settings_show(ctx: click.Context) -> None:
    try:
        show_json(get_client(ctx).settings())
    except ApiError as e:
        fail(str(e))


@settings_group.command("set", help="Change fields of one settings section")
@click.argument("section", type=click.Choice(SETTINGS_SECTIONS))
@click.option("--set", "values", multiple=True, help="field=value, repeatable")
@click.pass_context
def settings_set(ctx: click.Context, section: str, values: tuple) -> None:
    api = get_client(ctx)
    try:
        current = api.settings().get(section, {})
        saved = api.update_settings({section: {**current, **parse_pairs(values)}})
    except ApiError as e:
        fail(str(e))
    console.print(f"[green]Saved[/] {section} settings")
    show_json(saved[section])


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------
@cli.command("list", help="List records with optional search and filters")
@module_argument
@click.option("--search", default="", help="Case-insensitive text search")
@click.option("--filter", "filters", multiple=True, help="field=value exact match, repeatable")
@click.option("--date", default=None, help="Only records on this date (YYYY-MM-DD)")
@click.pass_context
def list_records(ctx: click.Context, module: str, search: str, filters: tuple, date: Optional[str]) -> None:
    mod = load_module(ctx, module)
    definition = mod.definition
    choices = parse_pairs(filters)
    unknown = set(choices) - set(definition.choice_fields)
    if unknown:
        raise click.BadParameter(
            f"cannot filter {module} by {', '.join(sorted(unknown))}; "
            f"choose from {', '.join(definition.choice_fields)}"
        )
    mod.filter.text = search
    mod.filter.choices = choices
    mod.filter.date = date
    rows = mod.visible()
    show_table(rows, ("id",) + definition.columns, title=definition.label)
    console.print(f"Total: {len(rows)}")


@cli.command("add", help="Create a record")
@module_argument
@click.option("--set", "values", multiple=True, help="field=value, repeatable")
@click.pass_context
def add_record(ctx: click.Context, module: str, values: tuple) -> None:
    mod = RecordModule(get_client(ctx), MODULES[module])
    mod.open_form()
    if not mod.submit(parse_pairs(values)):
        fail(mod.form_error or "Failed to save")
    created = mod.records[-1]
    console.print(f"[green]Created[/] {mod.definition.label.lower()} [cyan]{created.get('id')}[/]")


@cli.command("update", help="Change fields of a record")
@module_argument
@click.argument("record_id")
@click.option("--set", "values", multiple=True, help="field=value, repeatable")
@click.pass_context
def update_record(ctx: click.Context, module: str, record_id: str, values: tuple) -> None:
    mod = load_module(ctx, module)
    record = mod.find(record_id)
    if record is None:
        fail(f"{mod.definition.label} not found")
    mod.open_form(record)
    if not mod.submit(parse_pairs(values)):
        fail(mod.form_error or "Failed to save")
    console.print(f"[green]Updated[/] {mod.definition.label.lower()} [cyan]{record_id}[/]")


@cli.command("status", help="Set or toggle a record's status")
@module_argument
@click.argument("record_id")
@click.argument("value", required=False)
@click.pass_context
def set_status(ctx: click.Context, module: str, record_id: str, value: Optional[str]) -> None:
    mod = load_module(ctx, module)
    try:
        ok = mod.toggle_status(record_id, value)
    except ValueError as e:
        raise click.BadParameter(str(e))
    if not ok:
        fail(mod.alert or "Failed to update status")
    record = mod.find(record_id) or {}
    console.print(f"[green]Status[/] {record.get(mod.definition.status_field)}")


@cli.command("delete", help="Delete a record")
@module_argument
@click.argument("record_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_record(ctx: click.Context, module: str, record_id: str, yes: bool) -> None:
    mod = load_module(ctx, module)
    if not mod.delete(record_id, confirm=lambda msg: yes or Confirm.ask(msg)):
        if mod.alert:
            fail(mod.alert)
        console.print("[yellow]Cancelled[/]")
        return
    console.print(f"[green]Deleted[/] {record_id}")


if __name__ == "__main__":
    cli()
