import asyncio
import json
import logging
import typing as t
from typing import Annotated

import typer
from rich.console import Console

from fetchling.cli.callbacks import json_body_callback, key_value_callback
from fetchling.config import FetcherOptions, RequestConfig
from fetchling.core import Fetcher
from fetchling.exceptions import FetchError
from fetchling.logging import setup_logging
from fetchling.request import Operation

app = typer.Typer(no_args_is_help=True)


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log request and batching events")
    ] = False,
):
    """Issue CRUD calls against a resource API"""
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING, colors=False)


BaseUrlOption = Annotated[
    str,
    typer.Option("--base-url", "-u", help="Origin of the API", envvar="FETCHLING_BASE_URL"),
]
XhrPathOption = Annotated[
    str | None,
    typer.Option("--xhr-path", help="Path of the resource endpoint, /api unless configured"),
]
ParamOption = Annotated[
    list[str] | None,
    typer.Option(
        "--param",
        "-p",
        help="Request param as key=value, repeatable",
        callback=key_value_callback,
    ),
]
ContextOption = Annotated[
    list[str] | None,
    typer.Option(
        "--context",
        "-c",
        help="Context entry as key=value, repeatable",
        callback=key_value_callback,
    ),
]
CrumbOption = Annotated[str | None, typer.Option("--crumb", help="Crumb added to the context")]
BodyOption = Annotated[
    str | None,
    typer.Option("--body", "-b", help="JSON body", callback=json_body_callback),
]
IdParamOption = Annotated[
    str | None,
    typer.Option("--id-param", help="Param identifying a single resource instance"),
]


def run_operation(
    *,
    operation: Operation,
    resource: str,
    base_url: str,
    xhr_path: str | None,
    params: dict[str, str] | None,
    context: dict[str, str] | None,
    crumb: str | None,
    body: t.Any = None,
    id_param: str | None = None,
    post_for_read: bool = False,
) -> None:
    console = Console()
    overrides: dict[str, t.Any] = {
        "defaults": RequestConfig(id_param=id_param, post_for_read=post_for_read),
    }
    if xhr_path is not None:
        overrides["xhr_path"] = xhr_path
    options = FetcherOptions.from_env(**overrides)

    extra_context: dict[str, t.Any] = dict(context or {})
    if crumb:
        extra_context["crumb"] = crumb
    if extra_context:
        options = options.model_copy(update={"context": {**options.context, **extra_context}})

    async def _run() -> t.Any:
        async with Fetcher(options, base_url=base_url) as fetcher:
            match operation:
                case Operation.create:
                    return await fetcher.create(resource, params, body)
                case Operation.read:
                    return await fetcher.read(resource, params)
                case Operation.update:
                    return await fetcher.update(resource, params, body)
                case Operation.delete:
                    return await fetcher.delete(resource, params)

    try:
        data = asyncio.run(_run())
    except FetchError as e:
        console.print(f"[red]{operation} {resource} failed:[/red] {e.status_code} {e.status_text}")
        raise typer.Exit(code=1) from e
    console.print_json(json.dumps(data))


@app.command(name="read")
def read_resource(
    resource: Annotated[str, typer.Argument(help="The resource name")],
    base_url: BaseUrlOption = "",
    xhr_path: XhrPathOption = None,
    params: ParamOption = None,
    context: ContextOption = None,
    crumb: CrumbOption = None,
    id_param: IdParamOption = None,
    post_for_read: Annotated[
        bool, typer.Option("--post-for-read", help="Send the read as a POST envelope")
    ] = False,
):
    """Read a resource"""
    run_operation(
        operation=Operation.read,
        resource=resource,
        base_url=base_url,
        xhr_path=xhr_path,
        params=params,
        context=context,
        crumb=crumb,
        id_param=id_param,
        post_for_read=post_for_read,
    )


@app.command(name="create")
def create_resource(
    resource: Annotated[str, typer.Argument(help="The resource name")],
    base_url: BaseUrlOption = "",
    xhr_path: XhrPathOption = None,
    params: ParamOption = None,
    context: ContextOption = None,
    crumb: CrumbOption = None,
    body: BodyOption = None,
):
    """Create a resource"""
    run_operation(
        operation=Operation.create,
        resource=resource,
        base_url=base_url,
        xhr_path=xhr_path,
        params=params,
        context=context,
        crumb=crumb,
        body=body,
    )


@app.command(name="update")
def update_resource(
    resource: Annotated[str, typer.Argument(help="The resource name")],
    base_url: BaseUrlOption = "",
    xhr_path: XhrPathOption = None,
    params: ParamOption = None,
    context: ContextOption = None,
    crumb: CrumbOption = None,
    body: BodyOption = None,
):
    """Update a resource"""
    run_operation(
        operation=Operation.update,
        resource=resource,
        base_url=base_url,
        xhr_path=xhr_path,
        params=params,
        context=context,
        crumb=crumb,
        body=body,
    )


@app.command(name="delete")
def delete_resource(
    resource: Annotated[str, typer.Argument(help="The resource name")],
    base_url: BaseUrlOption = "",
    xhr_path: XhrPathOption = None,
    params: ParamOption = None,
    context: ContextOption = None,
    crumb: CrumbOption = None,
):
    """Delete a resource"""
    run_operation(
        operation=Operation.delete,
        resource=resource,
        base_url=base_url,
        xhr_path=xhr_path,
        params=params,
        context=context,
        crumb=crumb,
    )


if __name__ == "__main__":
    app()
