"""Token commands: snapshot, search and single-token lookup."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import typer

from tokenprism.core.config import ConfigManager
from tokenprism.core.container import ServiceContainer, build_container
from tokenprism.core.exceptions import DataValidationError, ErrorCode, ProviderError, TokenPrismError
from tokenprism.core.models import AggregatedRecord, FilterCriterion

from .constants import PROVIDER_EXIT_CODE, SYSTEM_EXIT_CODE, VALIDATION_EXIT_CODE
from .formatters import DEFAULT_COLUMNS, records_to_rows
from .utils import emit_error, get_cli_options, prepare_output

T = TypeVar("T")


def build_services(config_path: Path | None = None) -> ServiceContainer:
    """Factory hook for the service graph used by one command."""
    return build_container(ConfigManager(config_path).get_config())


def _run(ctx: typer.Context, action: Callable[[ServiceContainer], Awaitable[T]]) -> T:
    options = get_cli_options(ctx)

    async def runner() -> T:
        services = build_services(options.config_path)
        try:
            return await action(services)
        finally:
            await services.token_service.close()
            services.cache.close()

    try:
        return asyncio.run(runner())
    except DataValidationError as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from error
    except ProviderError as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=PROVIDER_EXIT_CODE) from error
    except TokenPrismError as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=SYSTEM_EXIT_CODE) from error


def _render(ctx: typer.Context, records: list[AggregatedRecord]) -> None:
    formatter, stream, stack = prepare_output(ctx)
    with stack:
        formatter.render(records_to_rows(records), stream=stream, columns=DEFAULT_COLUMNS)


def register(app: typer.Typer) -> None:
    """Register the token commands on the application."""
    app.command("snapshot")(snapshot_command)
    app.command("search")(search_command)
    app.command("token")(token_command)


def snapshot_command(
    ctx: typer.Context,
    sort_by: str = typer.Option("volume", "--sort", help="volume, priceChange, marketCap or liquidity."),
    period: str = typer.Option("24h", "--period", help="1h, 24h or 7d."),
    min_volume: float | None = typer.Option(None, "--min-volume", help="Minimum volume."),
    min_liquidity: float | None = typer.Option(None, "--min-liquidity", help="Minimum liquidity."),
    limit: int = typer.Option(20, "--limit", help="Number of tokens to show (max 100)."),
) -> None:
    """Fetch every source once, merge and print the ranked tokens."""
    criterion = FilterCriterion.normalize(
        {
            "sortBy": sort_by,
            "period": period,
            "minVolume": min_volume,
            "minLiquidity": min_liquidity,
            "limit": limit,
        }
    )

    async def action(services: ServiceContainer) -> list[AggregatedRecord]:
        snapshot = await services.token_service.fetch_and_aggregate()
        return services.engine.apply_criterion(
            snapshot, criterion, services.config.websocket.min_quality_score
        )

    _render(ctx, _run(ctx, action))


def search_command(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Name, ticker or address fragment (2+ characters)."),
) -> None:
    """Search every source for QUERY."""

    async def action(services: ServiceContainer) -> list[AggregatedRecord]:
        return await services.token_service.search_tokens(query)

    _render(ctx, _run(ctx, action))


def token_command(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="Token mint address."),
) -> None:
    """Show the merged record for one address."""

    async def action(services: ServiceContainer) -> AggregatedRecord | None:
        return await services.token_service.get_token_by_address(address)

    record = _run(ctx, action)
    if record is None:
        emit_error(f"Token {address} not found", ErrorCode.TOKEN_NOT_FOUND.value)
        raise typer.Exit(code=VALIDATION_EXIT_CODE)
    _render(ctx, [record])
