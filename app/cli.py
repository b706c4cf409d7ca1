"""Custom Flask CLI commands."""

from __future__ import annotations

import logging
from typing import Optional

import click
from flask import Flask, current_app

from .errors import ServiceError
from .models import db
from .services.auth_service import create_operator


def register_cli_commands(app: Flask) -> None:
    """Register application specific CLI commands."""

    @app.cli.command("create-operator")
    @click.argument("email")
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option("--name", default=None, help="Operator first name.")
    @click.option("--surname", default=None, help="Operator last name.")
    def create_operator_command(
        email: str, password: str, name: Optional[str], surname: Optional[str]
    ) -> None:
        """Create an operator account able to review place requests."""

        logger = current_app.logger or logging.getLogger(__name__)
        try:
            operator = create_operator(email, password, name=name, surname=surname)
        except ServiceError as exc:
            logger.warning("[CLI] Operator creation failed: %s", exc.message)
            raise click.ClickException(exc.message) from exc

        click.echo(f"Operator {operator.email} created with id {operator.id}")

    @app.cli.command("init-db")
    def init_db_command() -> None:
        """Create all tables for a fresh database."""
        db.create_all()
        click.echo("Database schema created")
