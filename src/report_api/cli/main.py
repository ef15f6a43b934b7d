import asyncio
import logging
from typing import Optional

import typer
import uvicorn

from ..core import database
from ..core.config import Settings, load_settings
from ..core.errors import DatabaseUnavailableError
from ..core.logging_config import setup_logging
from ..features.auth import service as auth_service
from ..features.auth.security import get_password_hash

logger = logging.getLogger(__name__)

app = typer.Typer(name="report-api", help="Run and administer the Report Generator API.")


class DBConnection:
    """Opens the database for the duration of a CLI command."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.client = None
        self.db = None

    async def __aenter__(self):
        self.client, self.db = await database.connect(self.settings)
        return self.db

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.client.close()


def _settings() -> Settings:
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_namespaces)
    return settings


def _run_with_db(coro):
    """Runs a database command, turning an unreachable server into exit code 1."""
    try:
        asyncio.run(coro)
    except DatabaseUnavailableError as e:
        typer.secho(f"Database unavailable: {e}", fg=typer.colors.RED)
        if "server selection" in str(e):
            typer.secho("MongoDB server selection error. Is MongoDB running?", fg=typer.colors.RED)
        raise typer.Exit(code=1)


@app.command("serve")
def serve_command(
    host: str = typer.Option("0.0.0.0", help="Interface to bind."),
    port: Optional[int] = typer.Option(None, help="Port to bind. Defaults to $PORT or 8000."),
):
    """Starts the HTTP server. Exits non-zero if the database is unreachable."""
    from ..main import create_app

    settings = _settings()
    bind_port = port if port is not None else settings.port
    logger.info(f"Starting server on http://{host}:{bind_port}")
    # uvicorn exits the process with a non-zero code when the lifespan startup fails
    uvicorn.run(create_app(settings), host=host, port=bind_port, log_config=None)


@app.command("check-db")
def check_db_command():
    """Checks that the configured MongoDB server answers."""
    _run_with_db(_check_db(_settings()))


async def _check_db(settings: Settings):
    async with DBConnection(settings) as db:
        user_count = await db[database.USERS].count_documents({})
        typer.echo(f"Connected to '{db.name}'. Found {user_count} user(s).")


# User management commands
user_app = typer.Typer(name="users", help="Manage user accounts.")
app.add_typer(user_app)


@user_app.command("create-admin")
def create_admin_user_command(
    username: str = typer.Option(..., prompt=True, help="Username for the new admin."),
    email: str = typer.Option(..., prompt=True, help="Email for the new admin."),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password for the new admin.")
):
    """Creates a new admin user."""
    _run_with_db(_create_admin_user(_settings(), username, email, password))


async def _create_admin_user(settings: Settings, username: str, email: str, password: str):
    async with DBConnection(settings) as db:
        typer.echo(f"Attempting to create admin user: {username} ({email})...")
        if await auth_service.get_user_by_username(db, username):
            typer.secho(f"Error: User with username '{username}' already exists.", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        if await auth_service.get_user_by_email(db, email):
            typer.secho(f"Error: User with email '{email}' already exists.", fg=typer.colors.RED)
            raise typer.Exit(code=1)

        admin_user = await auth_service.create_user(
            db,
            username=username,
            email=email,
            hashed_password=get_password_hash(password),
            role="admin",
        )
        typer.secho(f"Admin user '{username}' created successfully with ID: {admin_user['public_id']}", fg=typer.colors.GREEN)


@user_app.command("promote-to-admin")
def promote_user_to_admin_command(
    username: str = typer.Argument(..., help="The username of the user to promote to admin.")
):
    """Promotes an existing user to the admin role."""
    _run_with_db(_promote_user_to_admin(_settings(), username))


async def _promote_user_to_admin(settings: Settings, username: str):
    async with DBConnection(settings) as db:
        user = await auth_service.get_user_by_username(db, username)
        if not user:
            typer.secho(f"Error: User with username '{username}' not found.", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        if user["role"] == "admin":
            typer.secho(f"User '{username}' is already an admin.", fg=typer.colors.YELLOW)
            raise typer.Exit(code=0)

        await auth_service.set_role(db, username, "admin")
        typer.secho(f"User '{username}' has been successfully promoted to admin.", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
