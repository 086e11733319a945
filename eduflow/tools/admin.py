"""Operator command line for EduFlow (`eduflow-admin`).

Why:
    Fresh deployments need the schema and a first teacher account before the
    web UI is useful. Both commands talk to Postgres directly through the same
    repositories and services the API uses.
"""
from __future__ import annotations

import logging
import os

import click

from eduflow.identity_access.repo_db import DBUserRepo
from eduflow.identity_access.users import RegisterInput, UsersService
from eduflow.storage.bootstrap import apply_schema


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--db-dsn", envvar=["EDUFLOW_DATABASE_URL", "DATABASE_URL"], required=True, help="Postgres DSN.")
@click.pass_context
def cli(ctx: click.Context, db_dsn: str) -> None:
    """Administrative tasks against the EduFlow database."""
    logging.basicConfig(level=(os.getenv("LOG_LEVEL") or "INFO").upper())
    ctx.obj = {"dsn": db_dsn}


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create all tables (idempotent)."""
    apply_schema(ctx.obj["dsn"])
    click.echo("Schema applied.")


@cli.command("create-user")
@click.option("--username", required=True)
@click.option("--name", required=True, help="Display name.")
@click.option("--role", type=click.Choice(["teacher", "student"]), default="teacher", show_default=True)
@click.password_option()
@click.pass_context
def create_user(ctx: click.Context, username: str, name: str, role: str, password: str) -> None:
    """Register a user account with a hashed password."""
    service = UsersService(DBUserRepo(ctx.obj["dsn"]))
    result = service.register(RegisterInput(username=username, password=password, role=role, name=name))
    if not result.ok:
        click.echo(f"Error ({result.kind.value}): {result.message}", err=True)
        raise click.Abort()
    click.echo(f"Created {role} '{result.value['username']}' with id {result.value['id']}")


if __name__ == "__main__":  # pragma: no cover
    cli()
