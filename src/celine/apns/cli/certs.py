from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from celine.apns.certificates import CertificateBundle
from celine.apns.config.settings import Settings, settings

certs_app = typer.Typer(add_completion=False, help="Inspect client certificates")


@certs_app.command("show")
def show(
    env_file: Optional[Path] = typer.Option(
        None, "--env-file", "-e", help="Read settings from this .env file."
    ),
) -> None:
    """List the certificates presented during the handshake, in order."""
    cfg = Settings(_env_file=env_file) if env_file is not None else settings

    try:
        configuration = cfg.to_configuration()
    except (OSError, ValueError) as exc:
        typer.echo(f"Error: could not load certificates ({exc})", err=True)
        raise typer.Exit(1)

    bundle = CertificateBundle.assemble(
        primary=configuration.certificate,
        additional=configuration.additional_certificates,
        include_system_stores=configuration.include_system_stores,
        stores=cfg.certificate_stores(),
    )

    typer.echo(f"Endpoint: {configuration.base_url}")
    if not len(bundle):
        typer.echo("  (no certificates)")
        return

    for i, cert in enumerate(bundle, start=1):
        marker = "*" if i == len(bundle) and configuration.certificate else " "
        typer.echo(
            f"{marker} {i:>3}. {cert.subject.rfc4514_string()}  "
            f"(expires {cert.not_valid_after_utc.date().isoformat()})"
        )
