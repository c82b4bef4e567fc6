"""
POS operator CLI.

Command-line interface for common operations: schema setup, demo data,
tab overview, stock checks and development tokens.
"""

import sys
import time

import httpx
import typer
from rich.console import Console
from rich.table import Table

from shared.config.constants import MovementType, Roles, TableStatus
from shared.config.settings import settings
from shared.infrastructure.db import engine, get_db_context
from shared.security.auth import sign_jwt
from pos_api.models import (
    Base,
    Category,
    Order,
    OrderItem,
    Package,
    PackageItem,
    Product,
    RestaurantTable,
    SessionTotalsTrigger,
    User,
)
from pos_api.repositories import OrderRepository
from pos_api.services.adapters.stock_ledger import StockLedger, StockRequest
from pos_api.services.clock import utcnow
from pos_api.services.domain import TabService
from pos_api.services.domain.order_calculation import apply_item_totals, order_totals

app = typer.Typer(
    name="pos",
    help="Restaurant POS order & tab CLI",
    add_completion=False,
)
console = Console()


@app.callback()
def main():
    """Restaurant POS order & tab CLI."""
    # Tab totals are maintained on flush, here as in the API process
    SessionTotalsTrigger.register()


def _money(cents: int) -> str:
    return f"{cents / 100:.2f}"


# =============================================================================
# Database Commands
# =============================================================================


@app.command()
def db_init():
    """Create all tables."""
    console.print(f"[blue]Creating schema on {engine.url.render_as_string(hide_password=True)}[/blue]")
    try:
        Base.metadata.create_all(bind=engine)
        console.print("[green]✓ Schema ready[/green]")
    except Exception as e:
        console.print(f"[red]✗ Schema creation failed: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def db_seed(
    force: bool = typer.Option(False, "--force", "-f", help="Allow seeding in production"),
):
    """Seed staff, a small menu and tables T1..T20."""
    if settings.environment == "production" and not force:
        console.print("[red]Cannot seed production without --force[/red]")
        raise typer.Exit(1)

    with get_db_context() as db:
        if db.query(Product).first() is not None:
            console.print("[yellow]Catalog already present, nothing to do[/yellow]")
            return

        for email, role in (
            ("admin@pos.local", Roles.ADMIN),
            ("manager@pos.local", Roles.MANAGER),
            ("cashier@pos.local", Roles.CASHIER),
            ("waiter@pos.local", Roles.WAITER),
            ("kitchen@pos.local", Roles.KITCHEN),
            ("bar@pos.local", Roles.BARTENDER),
        ):
            db.add(User(email=email, full_name=role.title(), role=role))

        mains = Category(name="Main Dishes", default_destination="KITCHEN")
        drinks = Category(name="Drinks")
        db.add_all([mains, drinks])
        db.flush()

        burger = Product(category_id=mains.id, name="Burger", price_cents=8900, current_stock=50, reorder_level=10)
        fries = Product(category_id=mains.id, name="Fries", price_cents=3500, current_stock=80, reorder_level=15)
        lemonade = Product(category_id=drinks.id, name="Lemonade", price_cents=2500, current_stock=60, reorder_level=10)
        db.add_all([burger, fries, lemonade])
        db.flush()

        combo = Package(name="Burger Combo", price_cents=12900)
        combo.items = [
            PackageItem(product_id=burger.id, quantity=1),
            PackageItem(product_id=fries.id, quantity=1),
            PackageItem(product_id=lemonade.id, quantity=1),
        ]
        db.add(combo)

        for number in range(1, 21):
            db.add(RestaurantTable(table_number=f"T{number}", capacity=4, status=TableStatus.AVAILABLE))

        db.commit()
    console.print("[green]✓ Seeded 6 staff, 3 products, 1 package, 20 tables[/green]")


# =============================================================================
# Tab Commands
# =============================================================================


@app.command()
def demo_tab(
    table: str = typer.Argument("T17", help="Table number"),
    quantity: int = typer.Option(2, help="Burgers to order"),
):
    """Open a tab on a table with one DRAFT order, for manual testing."""
    with get_db_context() as db:
        restaurant_table = db.query(RestaurantTable).filter_by(table_number=table).first()
        product = db.query(Product).filter_by(name="Burger").first()
        if restaurant_table is None or product is None:
            console.print("[red]✗ Table or product missing. Run db-seed first.[/red]")
            raise typer.Exit(1)

        session, is_new = TabService(db).open_tab(table_id=restaurant_table.id)
        order = Order(
            order_number=OrderRepository(db).next_order_number(utcnow().date()),
            session_id=session.id,
            table_id=restaurant_table.id,
        )
        item = OrderItem(
            product_id=product.id,
            item_name=product.name,
            quantity=quantity,
            unit_price_cents=product.price_cents,
        )
        apply_item_totals(item)
        order.items.append(item)
        order_totals(order.items).apply_to(order)
        db.add(order)
        db.commit()

        state = "opened" if is_new else "reused"
        console.print(
            f"[green]✓ Tab {session.session_number} {state}, order {order.order_number} "
            f"({_money(order.total_cents)})[/green]"
        )


@app.command()
def tabs():
    """List open tabs with their running totals."""
    with get_db_context() as db:
        service = TabService(db)
        active = service.get_all_active_tabs()
        stats = service.get_session_stats()

        table = Table(title="Open Tabs")
        table.add_column("Tab", style="cyan")
        table.add_column("Table", style="magenta")
        table.add_column("Opened", style="yellow")
        table.add_column("Total", style="green", justify="right")

        for session in active:
            table.add_row(
                session.session_number,
                session.table.table_number if session.table else "-",
                session.opened_at.strftime("%H:%M"),
                _money(session.total_cents),
            )

        console.print(table)
        console.print(
            f"{stats['active_sessions']} open, "
            f"{_money(stats['total_revenue_cents'])} pending, "
            f"average {_money(stats['average_ticket_cents'])}"
        )


# =============================================================================
# Inventory Commands
# =============================================================================


@app.command()
def stock_check(
    lines: list[str] = typer.Argument(..., help="product_id:quantity pairs"),
):
    """Check whether stock covers the given product quantities."""
    requests = []
    for line in lines:
        try:
            product_id, quantity = (int(part) for part in line.split(":", 1))
        except ValueError:
            console.print(f"[red]✗ Expected product_id:quantity, got '{line}'[/red]")
            raise typer.Exit(2)
        requests.append(StockRequest(product_id=product_id, package_id=None, quantity=quantity))

    with get_db_context() as db:
        result = StockLedger(db).check_availability(requests)

    if result.available:
        console.print("[green]✓ Stock available[/green]")
        return

    table = Table(title="Insufficient Stock")
    table.add_column("Product", style="cyan")
    table.add_column("Requested", style="yellow", justify="right")
    table.add_column("Available", style="red", justify="right")
    for shortage in result.insufficient_items:
        table.add_row(shortage.product_name, str(shortage.requested), str(shortage.available))
    console.print(table)
    raise typer.Exit(1)


# =============================================================================
# Auth Commands
# =============================================================================


@app.command()
def token(
    user_id: int = typer.Argument(..., help="Staff user id"),
    role: list[str] = typer.Option([Roles.WAITER], "--role", "-r", help="Role claim (repeatable)"),
    ttl_minutes: int = typer.Option(60, help="Token lifetime"),
):
    """Issue a development bearer token."""
    if settings.environment == "production":
        console.print("[red]Tokens are issued by the auth service in production[/red]")
        raise typer.Exit(1)
    unknown = [r for r in role if r not in Roles.ALL]
    if unknown:
        console.print(f"[red]✗ Unknown role(s): {', '.join(unknown)}[/red]")
        raise typer.Exit(2)
    typer.echo(sign_jwt({"sub": str(user_id), "roles": role}, ttl_seconds=ttl_minutes * 60))


# =============================================================================
# Health Commands
# =============================================================================


@app.command()
def health(
    url: str = typer.Option(
        f"http://localhost:{settings.rest_api_port}/api/health/detailed", help="Health endpoint"
    ),
):
    """Check API health."""
    table = Table(title="Service Health")
    table.add_column("Service", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Response Time", style="yellow")

    start = time.time()
    try:
        response = httpx.get(url, timeout=5.0)
        elapsed = (time.time() - start) * 1000
        if response.status_code == 200:
            table.add_row("POS API", "✓ Healthy", f"{elapsed:.0f}ms")
        else:
            table.add_row("POS API", f"✗ Status {response.status_code}", f"{elapsed:.0f}ms")
    except httpx.HTTPError as e:
        table.add_row("POS API", f"✗ {type(e).__name__}", "-")

    console.print(table)


@app.command()
def version():
    """Show version information."""
    table = Table(title="POS Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("API", "1.0.0")
    table.add_row("Movement types", ", ".join(MovementType.ALL))
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()
