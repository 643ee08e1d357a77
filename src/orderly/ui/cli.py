from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
import sys

from dotenv import load_dotenv
from loguru import logger
import pydantic
import typer

from orderly.adapters.db.facade import DB
from orderly.adapters.db.repositories import (
    SqlOrderRepository,
    SqlSellerOrderRepository,
)
from orderly.adapters.events.outbox import OutboxPublisher, OutboxRelay
from orderly.adapters.events.publishers import LoggingPublisher
from orderly.core.config import OrderlyConfig, load_config_from_env
from orderly.core.errors import ConfigError, NotFoundError, OrderlyError
from orderly.orders.ports import OrderFilter
from orderly.orders.service import OrderLifecycleService
from orderly.orders.status import OrderStatus
from orderly.ui.schemas import (
    CancelView,
    CreateOrderRequest,
    OrderView,
    PageView,
    SellerOrderView,
)

# Load environment variables from .env
load_dotenv()

app = typer.Typer(
    help="Orderly: multi-seller order lifecycle CLI.",
    no_args_is_help=True,
)


@dataclass
class _State:
    config: OrderlyConfig


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


@app.callback()
def main_callback(ctx: typer.Context) -> None:
    """Load configuration and set up logging for every command."""
    try:
        config = load_config_from_env()
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(2) from None
    _configure_logging(config.log_level)
    ctx.obj = _State(config=config)


@contextmanager
def _database(ctx: typer.Context) -> Iterator[DB]:
    db = DB(ctx.obj.config.database_url)
    try:
        yield db
    finally:
        db.dispose()


def _service(db: DB, config: OrderlyConfig) -> OrderLifecycleService:
    return OrderLifecycleService(
        orders=SqlOrderRepository(db),
        seller_orders=SqlSellerOrderRepository(db),
        publisher=OutboxPublisher(db),
        transactions=db,
        order_number_attempts=config.order_number_attempts,
        default_currency=config.default_currency,
    )


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn domain errors into a one-line message and a non-zero exit code."""
    try:
        yield
    except NotFoundError as e:
        typer.echo(f"Not found: {e}", err=True)
        raise typer.Exit(3) from None
    except OrderlyError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None


def _parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus.parse(value)
    except ValueError:
        choices = ", ".join(status.value for status in OrderStatus)
        raise typer.BadParameter(f"must be one of: {choices}") from None


@app.command("init-db")
def init_db(
    ctx: typer.Context,
    url: str | None = typer.Option(
        None, help="Database URL (defaults to DATABASE_URL)"
    ),
) -> None:
    """Create the order tables if they do not exist."""
    db = DB(url or ctx.obj.config.database_url)
    try:
        db.create_schema()
    finally:
        db.dispose()
    typer.echo(f"Initialized database at {db.url}")


@app.command("create")
def create(
    ctx: typer.Context,
    request_path: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="JSON file with the order request"
    ),
) -> None:
    """Place an order from a JSON request file."""
    try:
        request = CreateOrderRequest.model_validate_json(request_path.read_text())
    except pydantic.ValidationError as e:
        typer.echo(f"Invalid order request:\n{e}", err=True)
        raise typer.Exit(1) from None

    with _database(ctx) as db, _reported_errors():
        order = _service(db, ctx.obj.config).create(request.to_input())
    typer.echo(OrderView.from_order(order).model_dump_json(indent=2))


@app.command("show")
def show(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Order id, or order number with --by-number"),
    by_number: bool = typer.Option(
        False, "--by-number", help="Look up by order number"
    ),
) -> None:
    """Print one order with its items and seller orders."""
    with _database(ctx) as db, _reported_errors():
        service = _service(db, ctx.obj.config)
        order = (
            service.get_order_by_number(key) if by_number else service.get_order(key)
        )
    typer.echo(OrderView.from_order(order).model_dump_json(indent=2))


@app.command("list")
def list_orders(
    ctx: typer.Context,
    buyer: str | None = typer.Option(None, help="Only orders of this buyer"),
    status: str | None = typer.Option(None, help="Only orders in this status"),
    page: int = typer.Option(1, help="Page number, starting at 1"),
    page_size: int = typer.Option(20, help="Orders per page (max 100)"),
) -> None:
    """List orders, newest first."""
    order_filter = OrderFilter(
        buyer_id=buyer,
        status=_parse_status(status) if status else None,
        page=page,
        page_size=page_size,
    )
    with _database(ctx) as db, _reported_errors():
        result = _service(db, ctx.obj.config).list_orders(order_filter)
    view = PageView[OrderView].from_page(
        result, [OrderView.from_order(order) for order in result]
    )
    typer.echo(view.model_dump_json(indent=2))


@app.command("seller-orders")
def seller_orders(
    ctx: typer.Context,
    seller_id: str = typer.Argument(..., help="Seller whose orders to list"),
    page: int = typer.Option(1, help="Page number, starting at 1"),
    page_size: int = typer.Option(20, help="Seller orders per page (max 100)"),
) -> None:
    """List a seller's seller orders, newest first."""
    with _database(ctx) as db, _reported_errors():
        result = _service(db, ctx.obj.config).list_seller_orders(
            seller_id, page, page_size
        )
    view = PageView[SellerOrderView].from_page(
        result, [SellerOrderView.from_seller_order(so) for so in result]
    )
    typer.echo(view.model_dump_json(indent=2))


@app.command("update-status")
def update_status(
    ctx: typer.Context,
    seller_order_id: str = typer.Argument(..., help="Seller order to move"),
    status: str = typer.Argument(..., help="Target status"),
) -> None:
    """Move a seller order to a new status."""
    with _database(ctx) as db, _reported_errors():
        seller_order = _service(db, ctx.obj.config).update_seller_order_status(
            seller_order_id, status
        )
    view = SellerOrderView.from_seller_order(seller_order)
    typer.echo(view.model_dump_json(indent=2))


@app.command("update-order-status")
def update_order_status(
    ctx: typer.Context,
    order_id: str = typer.Argument(..., help="Order to move"),
    status: str = typer.Argument(..., help="Target status"),
) -> None:
    """Move an order to a new status (administrative transitions)."""
    with _database(ctx) as db, _reported_errors():
        order = _service(db, ctx.obj.config).update_order_status(order_id, status)
    typer.echo(OrderView.from_order(order).model_dump_json(indent=2))


@app.command("cancel")
def cancel(
    ctx: typer.Context,
    order_id: str = typer.Argument(..., help="Order to cancel"),
    buyer: str = typer.Option(..., help="Buyer requesting the cancellation"),
) -> None:
    """Cancel an order and every seller order that has not shipped."""
    with _database(ctx) as db, _reported_errors():
        result = _service(db, ctx.obj.config).cancel(order_id, buyer)
    typer.echo(CancelView.from_result(result).model_dump_json(indent=2))
    if not result.cascade.complete:
        typer.echo("Warning: some seller orders could not be cancelled", err=True)


@app.command("relay-outbox")
def relay_outbox(
    ctx: typer.Context,
    batch_size: int | None = typer.Option(
        None, help="Events per batch (defaults to ORDERLY_OUTBOX_BATCH_SIZE)"
    ),
) -> None:
    """Deliver pending outbox events to the log publisher."""
    config: OrderlyConfig = ctx.obj.config
    with _database(ctx) as db, _reported_errors():
        relay = OutboxRelay(
            db,
            LoggingPublisher(),
            batch_size=batch_size or config.outbox_batch_size,
            max_attempts=config.outbox_max_attempts,
        )
        report = relay.drain()
    typer.echo(
        f"Delivered {report.delivered}, failed {report.failed}, "
        f"remaining {report.remaining}"
    )


def main() -> None:
    app()
