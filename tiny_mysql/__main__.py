import dataclasses
import logging
import shlex
from pathlib import Path
from typing import Optional

import typer

from tiny_mysql import TinyMySQL, locate, prepare
from tiny_mysql.db_config import DBConfig
from tiny_mysql.db_status import DBStatus
from tiny_mysql.env import get_instance_environ
from tiny_mysql.errors import TinyMySQLError

app = typer.Typer()

formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
handler = logging.StreamHandler()
handler.setFormatter(formatter)
logger = logging.getLogger("tiny_mysql")
logger.addHandler(handler)
logger.setLevel(logging.INFO)


def main():
    app()


def _fail(error: TinyMySQLError) -> typer.Exit:
    typer.echo(f"Error: {error}", err=True)
    if error.hint:
        typer.echo(error.hint, err=True)
    return typer.Exit(code=1)


def _echo_status(status: DBStatus) -> None:
    if not status.running:
        typer.echo(f"mysql is not running (data: {status.data_dir})")
        return
    typer.echo(f"mysql is running (PID: {status.pid})")
    typer.echo(f"  socket: {status.socket_path}")
    typer.echo(f"  port:   {status.port}")
    typer.echo(f"  log:    {status.logfile}")
    if status.server_status:
        typer.echo(f"  {status.server_status}")


@app.callback()
def options(
    ctx: typer.Context,
    root: Path = typer.Option(Path(".mysql"), envvar="TINYMYSQL_ROOT"),
    port: int = typer.Option(3306, envvar="TINYMYSQL_PORT"),
    bind_address: str = typer.Option("127.0.0.1", envvar="TINYMYSQL_BIND_ADDRESS"),
    bin_dir: Optional[Path] = typer.Option(None, envvar="TINYMYSQL_BIN_DIR"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    if verbose:
        logger.setLevel(logging.DEBUG)
    ctx.obj = DBConfig(root=root, port=port, bind_address=bind_address, bin_dir=bin_dir)


@app.command()
def start(ctx: typer.Context):
    """Prepare the instance and start the server."""
    try:
        status = prepare(ctx.obj).start()
    except TinyMySQLError as e:
        raise _fail(e)
    _echo_status(status)


@app.command()
def stop(ctx: typer.Context):
    """Shut the server down."""
    try:
        locate(ctx.obj).stop()
    except TinyMySQLError as e:
        raise _fail(e)
    typer.echo("mysql stopped")


@app.command()
def status(ctx: typer.Context):
    """Show whether the server is running."""
    try:
        _echo_status(locate(ctx.obj).status())
    except TinyMySQLError as e:
        raise _fail(e)


@app.command()
def console(ctx: typer.Context):
    """Open a mysql client on the server socket."""
    try:
        code = locate(ctx.obj).console()
    except TinyMySQLError as e:
        raise _fail(e)
    raise typer.Exit(code=code)


@app.command()
def cleanup(ctx: typer.Context):
    """Terminate every mysql server process and remove stale pid-files."""
    try:
        removed = locate(ctx.obj).force_cleanup()
    except TinyMySQLError as e:
        raise _fail(e)
    for pid_file in removed:
        typer.echo(f"removed {pid_file}")
    typer.echo("cleanup done")


@app.command()
def env(ctx: typer.Context):
    """Print shell exports locating the instance."""
    try:
        instance = locate(ctx.obj).instance
    except TinyMySQLError as e:
        raise _fail(e)
    for name, value in get_instance_environ(instance).items():
        typer.echo(f"export {name}={shlex.quote(value)}")


@app.command()
def session(ctx: typer.Context, rm: bool = False):
    """Run the server until the prompt is answered, then stop it."""
    config = ctx.obj
    if rm:
        config = dataclasses.replace(config, delete_on_exit=True)
    try:
        with TinyMySQL(config) as db:
            _echo_status(db.status())
            for name, value in db.environ.items():
                typer.echo(f"export {name}={shlex.quote(value)}")
            typer.prompt("Press enter to stop the server", default="", show_default=False)
    except TinyMySQLError as e:
        raise _fail(e)


if __name__ == "__main__":
    main()
