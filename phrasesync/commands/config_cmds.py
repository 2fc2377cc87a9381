from __future__ import annotations

import json

import typer
from rich import print


def config_show_cmd(*, load_config_or_exit) -> None:
    cfg = load_config_or_exit()
    typer.echo(json.dumps(cfg.to_dict(), ensure_ascii=False, indent=2))


def config_set_cmd(
    *, read_config_or_exit, write_config_file, known_keys, key: str, value: str
) -> None:
    """Persist one key to the config file; an empty value removes it."""

    if key not in known_keys:
        print(f"[red]Unknown config key: {key}[/red]")
        raise typer.Exit(code=1)
    data = read_config_or_exit()
    if value == "":
        data.pop(key, None)
    else:
        data[key] = value
    path = write_config_file(data)
    print(f"[green]Updated {key} in {path}[/green]")
