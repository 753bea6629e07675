"""Cache commands -- inspect the response cache."""

from __future__ import annotations

import typer

from cursetool.output import print_table

cache_app = typer.Typer(no_args_is_help=True)


@cache_app.command("info")
def cache_info() -> None:
    """Show where the response cache lives and how many entries it holds.

    Example::

        cursetool cache info
        cursetool --json cache info
    """
    from cursetool.cache import DB_NAME, CacheStore
    from cursetool.config import get_cache_dir

    with CacheStore.open(get_cache_dir() / DB_NAME) as store:
        stats = store.stats()
    print_table(
        ["location", "entries"],
        [[str(stats["location"]), str(stats["entries"])]],
        title="Response cache",
    )
