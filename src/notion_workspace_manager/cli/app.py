import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Annotated, Any

import typer

from notion_workspace_manager.cli._logging import configure_logging
from notion_workspace_manager.cli._output import print_cache_stats, print_error, print_result
from notion_workspace_manager.cli.factory import CliState, build_client
from notion_workspace_manager.config import create_config
from notion_workspace_manager.exceptions import ConfigError, NotionWorkspaceError
from notion_workspace_manager.notion.client import NotionClient

app = typer.Typer(name="notion-cli", help="Notion workspace operations", no_args_is_help=True)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable DEBUG logging")] = False,
    no_cache: Annotated[bool, typer.Option("--no-cache", help="Bypass the response cache")] = False,
    cache_debug: Annotated[
        bool, typer.Option("--cache-debug", help="Log cache hits, misses and invalidations")
    ] = False,
    config_path: Annotated[str, typer.Option("--config", help="Path to a YAML config file")] = "config.yaml",
) -> None:
    """Notion workspace operations."""
    configure_logging(verbose=verbose, cache_debug=cache_debug)
    ctx.obj = CliState(config=create_config(yaml_path=config_path), no_cache=no_cache)


_IdArg = Annotated[str, typer.Argument(help="Object ID")]
_CursorOpt = Annotated[str | None, typer.Option("--cursor", help="Pagination cursor")]
_LimitOpt = Annotated[int | None, typer.Option("--limit", min=1, max=100, help="Max results")]
_FilterOpt = Annotated[str | None, typer.Option("--filter", help="Filter as JSON string")]


def _parse_json(value: str | None) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        raise ConfigError(f"Invalid JSON: {value}") from None


def _run(ctx: typer.Context, call: Callable[[NotionClient], Awaitable[Any]]) -> Any:
    """Build a client, run one API call against it and return the result.

    Library errors are reported on stderr and turned into exit code 1.
    """
    state: CliState = ctx.obj

    async def _invoke() -> Any:
        async with build_client(state) as client:
            return await call(client)

    try:
        return asyncio.run(_invoke())
    except NotionWorkspaceError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None


def _run_and_print(ctx: typer.Context, call: Callable[[NotionClient], Awaitable[Any]]) -> None:
    print_result(_run(ctx, call))


# -- Search ------------------------------------------------------------------


@app.command()
def search(
    ctx: typer.Context,
    query: Annotated[str, typer.Option("--query", help="Search query")] = "",
    filter: _FilterOpt = None,
    cursor: _CursorOpt = None,
    limit: _LimitOpt = None,
) -> None:
    """Search pages and databases."""

    async def call(client: NotionClient) -> Any:
        return await client.search(query, filter=_parse_json(filter), start_cursor=cursor, page_size=limit)

    _run_and_print(ctx, call)


# -- Pages -------------------------------------------------------------------


@app.command("get-page")
def get_page(ctx: typer.Context, id: _IdArg) -> None:
    """Get a page by ID."""
    _run_and_print(ctx, lambda client: client.get_page(id))


@app.command("get-page-content")
def get_page_content(ctx: typer.Context, id: _IdArg, cursor: _CursorOpt = None, limit: _LimitOpt = None) -> None:
    """Get page content (blocks)."""
    _run_and_print(ctx, lambda client: client.get_blocks(id, start_cursor=cursor, page_size=limit))


@app.command("create-page")
def create_page(
    ctx: typer.Context,
    parent_page: Annotated[str | None, typer.Option("--parent-page", help="Parent page ID")] = None,
    parent_database: Annotated[str | None, typer.Option("--parent-database", help="Parent database ID")] = None,
    title: Annotated[str | None, typer.Option("--title", help="Page title")] = None,
    properties: Annotated[str | None, typer.Option("--properties", help="Properties as JSON string")] = None,
    children: Annotated[str | None, typer.Option("--children", help="Block children as JSON array")] = None,
) -> None:
    """Create a new page."""
    if parent_page is None and parent_database is None:
        print_error("Either --parent-page or --parent-database is required")
        raise typer.Exit(code=1)

    async def call(client: NotionClient) -> Any:
        parent = {"database_id": parent_database} if parent_database else {"page_id": str(parent_page)}
        props = _parse_json(properties) or {}
        if title and "title" not in props:
            props["title"] = {"title": [{"text": {"content": title}}]}
        return await client.create_page(parent, props, _parse_json(children))

    _run_and_print(ctx, call)


@app.command("update-page")
def update_page(
    ctx: typer.Context,
    id: _IdArg,
    properties: Annotated[str, typer.Option("--properties", help="Properties as JSON string")],
) -> None:
    """Update page properties."""

    async def call(client: NotionClient) -> Any:
        return await client.update_page(id, _parse_json(properties))

    _run_and_print(ctx, call)


@app.command("archive-page")
def archive_page(ctx: typer.Context, id: _IdArg) -> None:
    """Archive (delete) a page."""
    _run_and_print(ctx, lambda client: client.archive_page(id))


# -- Databases ---------------------------------------------------------------


@app.command("get-database")
def get_database(ctx: typer.Context, id: _IdArg) -> None:
    """Get database schema."""
    _run_and_print(ctx, lambda client: client.get_database(id))


@app.command("query-database")
def query_database(
    ctx: typer.Context,
    id: _IdArg,
    filter: _FilterOpt = None,
    sorts: Annotated[str | None, typer.Option("--sorts", help="Sorts as JSON array")] = None,
    cursor: _CursorOpt = None,
    limit: _LimitOpt = None,
) -> None:
    """Query database rows."""

    async def call(client: NotionClient) -> Any:
        return await client.query_database(
            id,
            filter=_parse_json(filter),
            sorts=_parse_json(sorts),
            start_cursor=cursor,
            page_size=limit,
        )

    _run_and_print(ctx, call)


@app.command("create-database-row")
def create_database_row(
    ctx: typer.Context,
    id: _IdArg,
    properties: Annotated[str, typer.Option("--properties", help="Properties as JSON string")],
) -> None:
    """Create a row in a database."""

    async def call(client: NotionClient) -> Any:
        return await client.create_database_row(id, _parse_json(properties))

    _run_and_print(ctx, call)


@app.command("list-databases")
def list_databases(ctx: typer.Context) -> None:
    """List all accessible databases."""
    _run_and_print(ctx, lambda client: client.list_databases())


# -- Blocks ------------------------------------------------------------------


@app.command("get-block")
def get_block(ctx: typer.Context, id: _IdArg) -> None:
    """Get a block by ID."""
    _run_and_print(ctx, lambda client: client.get_block(id))


@app.command("append-blocks")
def append_blocks(
    ctx: typer.Context,
    id: _IdArg,
    children: Annotated[str, typer.Option("--children", help="Block children as JSON array")],
) -> None:
    """Append blocks to a page/block."""

    async def call(client: NotionClient) -> Any:
        return await client.append_blocks(id, _parse_json(children))

    _run_and_print(ctx, call)


@app.command("delete-block")
def delete_block(ctx: typer.Context, id: _IdArg) -> None:
    """Delete a block."""
    _run_and_print(ctx, lambda client: client.delete_block(id))


# -- Users -------------------------------------------------------------------


@app.command("list-users")
def list_users(ctx: typer.Context, cursor: _CursorOpt = None, limit: _LimitOpt = None) -> None:
    """List workspace users."""
    _run_and_print(ctx, lambda client: client.list_users(start_cursor=cursor, page_size=limit))


@app.command("get-user")
def get_user(ctx: typer.Context, id: _IdArg) -> None:
    """Get a user by ID."""
    _run_and_print(ctx, lambda client: client.get_user(id))


@app.command("get-self")
def get_self(ctx: typer.Context) -> None:
    """Get the bot user info."""
    _run_and_print(ctx, lambda client: client.get_self())


# -- Comments ----------------------------------------------------------------


@app.command("get-comments")
def get_comments(ctx: typer.Context, id: _IdArg, cursor: _CursorOpt = None, limit: _LimitOpt = None) -> None:
    """Get comments on a page/block."""
    _run_and_print(ctx, lambda client: client.get_comments(block_id=id, start_cursor=cursor, page_size=limit))


@app.command("create-comment")
def create_comment(
    ctx: typer.Context,
    id: _IdArg,
    text: Annotated[str, typer.Option("--text", help="Comment text")],
) -> None:
    """Create a comment."""
    rich_text = [{"text": {"content": text}}]
    _run_and_print(ctx, lambda client: client.create_comment(rich_text=rich_text, parent_page_id=id))


# -- Cache -------------------------------------------------------------------


@app.command("cache-stats")
def cache_stats(
    ctx: typer.Context,
    as_json: Annotated[bool, typer.Option("--json", help="Print stats as JSON")] = False,
) -> None:
    """Show cache statistics."""

    async def call(client: NotionClient) -> Any:
        return client.get_cache_stats()

    stats = _run(ctx, call)
    if as_json:
        print_result(stats.to_dict())
    else:
        print_cache_stats(stats)


@app.command("cache-clear")
def cache_clear(ctx: typer.Context) -> None:
    """Clear all cached responses."""

    async def call(client: NotionClient) -> Any:
        return {"cleared": client.clear_cache()}

    _run_and_print(ctx, call)


@app.command("cache-invalidate")
def cache_invalidate(ctx: typer.Context, key: Annotated[str, typer.Argument(help="Cache key")]) -> None:
    """Invalidate one cache entry by key."""

    async def call(client: NotionClient) -> Any:
        return {"key": key, "removed": client.invalidate_cache_key(key)}

    _run_and_print(ctx, call)
