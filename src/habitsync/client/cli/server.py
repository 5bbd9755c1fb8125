"""Server command for HabitSync CLI.

Commands:
- serve: Run the reference sync server
"""

from __future__ import annotations

import os

import click


@click.command()
@click.option("--host", default="127.0.0.1", help="Interface to bind.")
@click.option("--port", type=int, default=8000, help="Port to listen on.")
@click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: HABITSYNC_DB_PATH or ./habitsync.db).",
)
def serve(host: str, port: int, db_path: str | None) -> None:
    """Run the reference sync server.

    Examples:

        habitsync serve --port 8080

        habitsync serve --db-path /var/lib/habitsync/habitsync.db
    """
    import uvicorn

    if db_path:
        os.environ["HABITSYNC_DB_PATH"] = db_path

    click.echo(f"Serving on http://{host}:{port}")
    uvicorn.run("habitsync.server.app:app_factory", factory=True, host=host, port=port)
