"""CLI interface for Reader Sync using Typer."""

from pathlib import Path
from typing import List, Optional

import typer
import yaml
from typing_extensions import Annotated

from . import __version__
from .errors import ReaderError
from .main import ReaderSyncApp


app = typer.Typer(
    name="reader-sync",
    help="Synchronize subscriptions and article state with a Google Reader style service",
    add_completion=False,
)

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show detailed output")]


def _open(config_file: Optional[Path], verbose: bool = False) -> ReaderSyncApp:
    try:
        app_instance = ReaderSyncApp(config_file)
    except Exception as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)
    app_instance.set_verbose(verbose)
    return app_instance


def _fail(app_instance: ReaderSyncApp, error: Exception) -> None:
    typer.echo(f"✗ Error: {error}", err=True)
    app_instance.close()
    raise typer.Exit(1)


@app.command()
def status(config_file: ConfigOption = None) -> None:
    """Show version, server and local state information."""
    app_instance = _open(config_file)
    info_data = app_instance.get_info()
    typer.echo(f"Reader Sync v{__version__}")
    typer.echo(f"Server: {info_data['server']}")
    typer.echo(f"User: {info_data['username'] or 'not configured'}")
    typer.echo(f"Article limit: {info_data['article_limit']}")

    stats = info_data.get('stats', {})
    if stats:
        typer.echo(f"\nStats:")
        for key, value in stats.items():
            typer.echo(f"  {key}: {value}")
    app_instance.close()


@app.command()
def login(config_file: ConfigOption = None, verbose: VerboseOption = False) -> None:
    """Authenticate and fetch both tokens."""
    app_instance = _open(config_file, verbose)
    if not app_instance.login():
        _fail(app_instance, app_instance.manager.authenticator.last_error or ReaderError("login failed"))
    typer.echo("✓ Authenticated")
    app_instance.close()


@app.command()
def subscriptions(config_file: ConfigOption = None, verbose: VerboseOption = False) -> None:
    """List remote subscriptions and store them locally."""
    app_instance = _open(config_file, verbose)
    try:
        subs = app_instance.manager.load_subscriptions("cli")
    except ReaderError as e:
        _fail(app_instance, e)
    for sub in subs:
        labels = f" [{', '.join(sub.labels)}]" if sub.labels else ""
        typer.echo(f"{sub.title}{labels}\n  {sub.feed_url}")
    typer.echo(f"\n{len(subs)} subscriptions")
    app_instance.close()


@app.command()
def subscribe(
    url: Annotated[str, typer.Argument(help="Feed URL")],
    folder: Annotated[Optional[str], typer.Option("--folder", "-f", help="Folder to file the feed under")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Subscribe to a feed."""
    app_instance = _open(config_file, verbose)
    try:
        app_instance.manager.subscribe(url)
        if folder:
            app_instance.manager.set_folder_name(folder, url, True)
    except ReaderError as e:
        _fail(app_instance, e)
    typer.echo(f"✓ Subscribed to {url}")
    app_instance.close()


@app.command()
def unsubscribe(
    url: Annotated[str, typer.Argument(help="Feed URL")],
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Unsubscribe from a feed."""
    app_instance = _open(config_file, verbose)
    try:
        app_instance.manager.unsubscribe(url)
    except ReaderError as e:
        _fail(app_instance, e)
    typer.echo(f"✓ Unsubscribed from {url}")
    app_instance.close()


@app.command()
def label(
    url: Annotated[str, typer.Argument(help="Feed URL")],
    name: Annotated[str, typer.Argument(help="Folder name, nested with '/'")],
    remove: Annotated[bool, typer.Option("--remove", help="Remove the feed from the folder")] = False,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Add a feed to a folder, or remove it from one."""
    app_instance = _open(config_file, verbose)
    try:
        app_instance.manager.set_folder_name(name, url, not remove)
    except ReaderError as e:
        _fail(app_instance, e)
    typer.echo(f"✓ {'Removed' if remove else 'Added'} {url} {'from' if remove else 'to'} {name}")
    app_instance.close()


@app.command("mark-read")
def mark_read(
    guid: Annotated[str, typer.Argument(help="Article id")],
    unread: Annotated[bool, typer.Option("--unread", help="Mark unread instead")] = False,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Mark an article read or unread."""
    app_instance = _open(config_file, verbose)
    try:
        app_instance.manager.mark_read(app_instance.article(guid), not unread).result()
    except ReaderError as e:
        _fail(app_instance, e)
    typer.echo(f"✓ Marked {guid} {'unread' if unread else 'read'}")
    app_instance.close()


@app.command()
def star(
    guid: Annotated[str, typer.Argument(help="Article id")],
    remove: Annotated[bool, typer.Option("--remove", help="Remove the star instead")] = False,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Star or unstar an article."""
    app_instance = _open(config_file, verbose)
    try:
        app_instance.manager.mark_starred(app_instance.article(guid), not remove).result()
    except ReaderError as e:
        _fail(app_instance, e)
    typer.echo(f"✓ {'Unstarred' if remove else 'Starred'} {guid}")
    app_instance.close()


@app.command()
def refresh(
    urls: Annotated[Optional[List[str]], typer.Argument(help="Feeds to refresh (default: all)")] = None,
    ignore_limit: Annotated[bool, typer.Option("--ignore-limit", help="Fetch without the article cap")] = False,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Refresh feeds and report new articles."""
    app_instance = _open(config_file, verbose)
    try:
        batch = app_instance.sync(urls, ignore_limit=ignore_limit)
    except ReaderError as e:
        _fail(app_instance, e)

    for feed_url, result in batch.results.items():
        typer.echo(f"✓ {feed_url}: {result.article_count} articles, {result.new_count} new")
    for feed_url, error in batch.failures.items():
        typer.echo(f"✗ {feed_url}: {error}", err=True)
    typer.echo(f"\n{app_instance.manager.count_of_new_articles} new articles")
    app_instance.close()
    if batch.failures:
        raise typer.Exit(1)


@app.command()
def config(
    show: Annotated[bool, typer.Option("--show", help="Show current config")] = False,
    example: Annotated[bool, typer.Option("--example", help="Generate example config")] = False,
    config_file: ConfigOption = None,
) -> None:
    """Manage Reader Sync configuration."""
    if example:
        from .config import create_example_config
        typer.echo(create_example_config())
    elif show:
        try:
            from .config import load_config
            config_obj = load_config(config_file)
            data = config_obj.model_dump()
            if data["server"].get("password"):
                data["server"]["password"] = "********"
            typer.echo(yaml.dump(data, default_flow_style=False, indent=2))
        except Exception as e:
            typer.echo(f"✗ Error loading config: {e}", err=True)
            raise typer.Exit(1)
    else:
        typer.echo("Use --show to view config or --example to generate example")


if __name__ == "__main__":
    app()
