import json
import typing as t

import typer


def key_value_callback(ctx: typer.Context, value: list[str] | None) -> dict[str, str] | None:
    if ctx.resilient_parsing:
        return None
    pairs: dict[str, str] = {}
    for item in value or []:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(message=f"'{item}' is not a key=value pair")
        pairs[key] = raw
    return pairs


def json_body_callback(ctx: typer.Context, value: str | None) -> t.Any:
    if ctx.resilient_parsing or value is None:
        return None
    try:
        return json.loads(value)
    except ValueError as e:
        raise typer.BadParameter(message=f"body is not valid JSON: {e}", param_hint="--body") from e
