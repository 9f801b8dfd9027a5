from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click
import httpx

from .config import Config, load_config
from .logging import setup_logging
from .models import GeoPair, Selection
from .service import BirdExplorer, build_explorer, parse_point, recent_sightings, share_link
from .taxonomy import build_group_order, group_options, sort_species

OUTPUT_VERSION = "1.0"

T = TypeVar("T")


def _run(config: Config, action: Callable[[BirdExplorer], Awaitable[T]]) -> T:
    async def runner() -> T:
        async with httpx.AsyncClient(headers={"User-Agent": config.user_agent}) as http:
            explorer = build_explorer(config, http)
            return await action(explorer)

    return asyncio.run(runner())


def _emit(payload: dict[str, Any]) -> None:
    click.echo(json.dumps({"version": OUTPUT_VERSION, **payload}, ensure_ascii=False, indent=2))


def _invoke(ctx: click.Context, event: str, body: Callable[[Config], dict[str, Any]]) -> None:
    config_path: Path = ctx.obj["config_path"]
    logger = ctx.obj["logger"]
    try:
        config = load_config(config_path)
        _emit(body(config))
    except Exception as exc:  # noqa: BLE001
        logger.error(event, error=str(exc))
        raise click.ClickException(str(exc)) from exc


def _center(config: Config, lat: float | None, lng: float | None) -> GeoPair:
    return parse_point(lat, lng, default=config.home)


lat_option = click.option("--lat", type=float, default=None, help="Map center latitude.")
lng_option = click.option("--lng", type=float, default=None, help="Map center longitude.")


@click.group()
@click.option(
    "--config",
    "config_path",
    default="birdexplorer.config.json",
    show_default=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to configuration JSON file.",
)
@click.option(
    "--json-logs",
    is_flag=True,
    default=False,
    help="Emit logs in JSON (overrides LOG_FORMAT env).",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug events.")
@click.pass_context
def main(ctx: click.Context, config_path: Path, json_logs: bool, verbose: bool) -> None:
    """BirdExplorer CLI."""
    json_mode = json_logs or os.getenv("LOG_FORMAT") == "json"
    logger = setup_logging(json_mode=json_mode, verbose=verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["logger"] = logger


@main.command(name="species")
@lat_option
@lng_option
@click.pass_context
def species_cmd(ctx: click.Context, lat: float | None, lng: float | None) -> None:
    """List species recently observed near a point, in taxonomic order."""

    def body(config: Config) -> dict[str, Any]:
        center = _center(config, lat, lng)
        area = _run(config, lambda explorer: explorer.load_area(center))
        ordered = sort_species(
            area.species, area.taxonomies, build_group_order(area.taxonomies.values())
        )
        return {
            "center": center.to_dict(),
            "groups": group_options(area.species, area.taxonomies),
            "species": [
                {"name": name, "code": code, "group": area.taxonomies.get(code, "")}
                for name, code in ordered
            ],
            "recent": [obs.to_dict() for obs in recent_sightings(area.observations)],
            "link": share_link(center),
        }

    _invoke(ctx, "cli_species_failed", body)


@main.command(name="suggest")
@click.argument("text")
@lat_option
@lng_option
@click.pass_context
def suggest_cmd(ctx: click.Context, text: str, lat: float | None, lng: float | None) -> None:
    """Suggest species names for partial input."""

    def body(config: Config) -> dict[str, Any]:
        center = _center(config, lat, lng)

        async def action(explorer: BirdExplorer):
            area = await explorer.load_area(center)
            return await explorer.suggestion_engine(area).suggest(text)

        result = _run(config, action)
        return {"query": text, "kind": result.kind, **result.to_dict()}

    _invoke(ctx, "cli_suggest_failed", body)


@main.command(name="locate")
@click.argument("species_code")
@lat_option
@lng_option
@click.pass_context
def locate_cmd(
    ctx: click.Context, species_code: str, lat: float | None, lng: float | None
) -> None:
    """Find the most representative recent observation of a species.

    Species outside the local set are located through their mapped range.
    """

    def body(config: Config) -> dict[str, Any]:
        center = _center(config, lat, lng)

        async def action(explorer: BirdExplorer):
            area = await explorer.load_area(center)
            names = {code: name for name, code in area.species.items()}
            if species_code in names:
                selection = Selection(name=names[species_code], code=species_code)
            else:
                selection = Selection(name=species_code, code=species_code, extended=True)
            return selection, await explorer.locate(selection, center)

        selection, observation = _run(config, action)
        new_center = center if observation is None else observation.point
        return {
            "selection": selection.to_dict(),
            "observation": None if observation is None else observation.to_dict(),
            "link": share_link(new_center, selection.code),
        }

    _invoke(ctx, "cli_locate_failed", body)


@main.command(name="compare")
@click.argument("lat1", type=float)
@click.argument("lng1", type=float)
@click.argument("lat2", type=float)
@click.argument("lng2", type=float)
@click.pass_context
def compare_cmd(
    ctx: click.Context, lat1: float, lng1: float, lat2: float, lng2: float
) -> None:
    """Compare the species observed around two locations."""

    def body(config: Config) -> dict[str, Any]:
        first = GeoPair(lat=lat1, lng=lng1)
        second = GeoPair(lat=lat2, lng=lng2)
        comparison = _run(config, lambda explorer: explorer.compare_locations(first, second))
        return comparison.to_dict()

    _invoke(ctx, "cli_compare_failed", body)


@main.command(name="browse")
@click.option("--group", default=None, help="Restrict to one family group.")
@click.option("--pages", default=1, show_default=True, type=click.IntRange(min=1))
@lat_option
@lng_option
@click.pass_context
def browse_cmd(
    ctx: click.Context,
    group: str | None,
    pages: int,
    lat: float | None,
    lng: float | None,
) -> None:
    """Browse nearby species with photos, batch by batch."""

    def body(config: Config) -> dict[str, Any]:
        center = _center(config, lat, lng)

        async def action(explorer: BirdExplorer):
            area = await explorer.load_area(center)
            session = explorer.browse_session()
            loader = explorer.image_loader()
            await loader.load(session, area.species, area.taxonomies)
            if group:
                await loader.select_group(session, group)
            for _ in range(pages - 1):
                if not await loader.load_more(session):
                    break
            return session

        session = _run(config, action)
        return {
            "group": session.selected_group,
            "groups": session.groups,
            "page": session.page,
            "species": [
                {"name": name, "code": code, "image": image}
                for name, code, image in session.visible()
            ],
        }

    _invoke(ctx, "cli_browse_failed", body)


if __name__ == "__main__":
    main()
