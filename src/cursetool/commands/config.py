"""Config commands -- view and modify global configuration.

Provides the ``cursetool config`` sub-command group for reading and
updating the user's global configuration file
(:class:`~cursetool.models.GlobalConfig`): catalog base URL, API-key
source, worker count, request settings, and cache lifetimes.
"""

from __future__ import annotations

import typer

from cursetool.output import format_response, info, success

config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the current configuration.

    Example::

        cursetool config show
        cursetool --json config show
    """
    from cursetool.config import get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g. 'cache.default_ttl_seconds')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is coerced to the type of the existing field (bool, int, or
    str) and the result is validated before it is saved.

    Raises:
        InvalidUsageError: If the key does not exist, the value cannot be
            coerced, or the resulting configuration is invalid.

    Example::

        cursetool config set jobs 4
        cursetool config set api_key_source file:~/.curseforge-key
        cursetool config set cache.default_ttl_seconds 3600
    """
    from cursetool.config import (
        load_global_config,
        save_global_config,
        validate_config_data,
    )
    from cursetool.exceptions import ConfigError, InvalidUsageError

    data = load_global_config().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            raise InvalidUsageError(f"Invalid config key: {key}")
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        raise InvalidUsageError(f"Invalid config key: {key}")

    existing = target[final_key]
    coerced: object = value
    if isinstance(existing, bool):
        if value.lower() not in ("true", "false", "1", "0", "yes", "no"):
            raise InvalidUsageError(f"Expected a boolean for {key}, got {value!r}")
        coerced = value.lower() in ("true", "1", "yes")
    elif isinstance(existing, int):
        try:
            coerced = int(value)
        except ValueError as exc:
            raise InvalidUsageError(f"Expected an integer for {key}, got {value!r}") from exc
    target[final_key] = coerced

    try:
        config = validate_config_data(data)
    except ConfigError as exc:
        raise InvalidUsageError(str(exc)) from exc

    save_global_config(config)
    success(f"Set {key} = {coerced}")
