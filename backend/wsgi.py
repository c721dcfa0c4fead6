"""WSGI entry point."""

import json
import os

import click

from lvlai import create_app, db
from lvlai.models.focus_session import MAX_STATS_PERIOD_DAYS

app = create_app(os.environ.get("FLASK_ENV", "production"))


# Create tables on startup (migrations handle schema changes)
with app.app_context():
    db.create_all()


@app.cli.command("focus-stats")
@click.argument("user_id", type=int)
@click.option(
    "--period",
    default=30,
    show_default=True,
    type=click.IntRange(1, MAX_STATS_PERIOD_DAYS),
    help="Window in days",
)
def focus_stats_command(user_id, period):
    """Print focus statistics for a user as JSON."""
    from lvlai.services.focus_service import get_focus_service
    from lvlai.services.session_state import SessionNotFoundError

    try:
        stats = get_focus_service().stats(user_id, period)
    except SessionNotFoundError as e:
        raise click.ClickException(e.message) from e

    click.echo(json.dumps(stats, indent=2))


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000)
