from __future__ import annotations

import typer
from celine.apns.cli.certs import certs_app
from celine.apns.cli.push import push_app


def build_app() -> typer.Typer:
    app = typer.Typer(add_completion=True, help="CELINE APNs client CLI")
    app.add_typer(push_app, name="push")
    app.add_typer(certs_app, name="certs")
    return app


def create_app():
    app = build_app()
    app()


if __name__ == "__main__":
    create_app()
