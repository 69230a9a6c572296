import click
from flask import Flask

from .extensions import db
from .models import User
from .seed import run_seed
from .services.blob_store import get_blob_store
from .services.identity import issue_token
from .services.reconciliation import reconcile


def register_commands(app: Flask):
    @app.cli.command("seed")
    @click.option("--days", default=7, show_default=True, help="Post days to create from today.")
    def seed_command(days):
        """Create demo users, a workspace and post days."""
        ws = run_seed(days=days)
        click.echo(f"Seeded workspace {ws.id}")

    @app.cli.command("issue-token")
    @click.argument("uid")
    def issue_token_command(uid):
        """Print a bearer token for UID, valid for AUTH_TOKEN_MAX_AGE seconds."""
        if db.session.get(User, uid) is None:
            raise click.ClickException(f"No user with id {uid!r}")
        click.echo(issue_token(uid))

    @app.cli.group("assets")
    def assets_group():
        """Asset store maintenance."""

    @assets_group.command("reconcile")
    @click.option("--purge", is_flag=True, help="Delete stored objects that have no asset record.")
    def reconcile_command(purge):
        """Report blobs and asset records left behind by failed imports."""
        report = reconcile(get_blob_store(), purge=purge)
        click.echo(f"Orphaned blobs: {len(report.orphaned_blobs)}")
        for path in report.orphaned_blobs:
            click.echo(f"  {path}")
        click.echo(f"Unreferenced assets: {len(report.unreferenced_assets)}")
        for workspace_id, asset_id in report.unreferenced_assets:
            click.echo(f"  {workspace_id}/{asset_id}")
        if purge:
            click.echo(f"Purged blobs: {len(report.purged_blobs)}")
