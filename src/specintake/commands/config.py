"""Config commands -- view and modify the user configuration.

Provides the ``specintake config`` sub-command group for reading, updating,
and resetting the persisted :class:`~specintake.models.IntakeConfig`
(parser timeouts, the validation default, and output format).
"""

from __future__ import annotations

import typer

from specintake.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the current configuration.

    Example::

        specintake config show
        specintake --json config show
    """
    from specintake.config import config_path, load_config
    from specintake.exceptions import ConfigError

    try:
        config = load_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Config file: {config_path()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'output.format')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to the type of
    the existing field (bool, int, float, or str) and the result validated
    against :class:`~specintake.models.IntakeConfig` before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or validation fails.

    Example::

        specintake config set parse_timeout_ms 60000
        specintake config set validate_api true
        specintake config set output.format json
    """
    from pydantic import ValidationError

    from specintake.config import load_config, save_config
    from specintake.exceptions import ConfigError
    from specintake.models import IntakeConfig

    try:
        config = load_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    coerced: object = value
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes", "on")
    elif isinstance(current, (int, float)):
        number_type = type(current)
        try:
            coerced = number_type(value)
        except ValueError:
            error(f"Expected {number_type.__name__} for {key}, got: {value}")
            raise typer.Exit(code=2) from None

    target[final_key] = coerced

    try:
        new_config = IntakeConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset the configuration to defaults.

    Asks for confirmation unless ``--force`` is given.

    Example::

        specintake config reset --force
    """
    from specintake.config import save_config
    from specintake.models import IntakeConfig

    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_config(IntakeConfig())
    success("Configuration reset to defaults.")
