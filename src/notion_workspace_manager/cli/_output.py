from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from notion_workspace_manager.cache.memory_store import CacheStats

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def print_error(message: str) -> None:
    err_console.print(f"[red bold]Error:[/red bold] {escape(message)}")


def print_result(result: Any) -> None:
    console.print_json(data=result)


def print_cache_stats(stats: CacheStats) -> None:
    table = Table(title="Cache statistics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for name, value in stats.to_dict().items():
        table.add_row(name, str(value))
    console.print(table)
