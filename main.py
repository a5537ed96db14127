#!/usr/bin/env python3
"""
Procurement tracker — CLI entry point.

Usage examples:
  python main.py check                           # Verify setup (LLM backend, database)
  python main.py seed                            # Generate demo inventory via the LLM
  python main.py seed --file data/seed.json      # Seed from a JSON dataset
  python main.py report                          # Stock value, low stock, categories
  python main.py analyze                         # AI replenishment -> new requisitions
  python main.py convert PR-1001 --supplier <id> # Requisition -> draft purchase order
  python main.py set-status PO-1001 ORDERED
  python main.py receive PO-1001                 # Mark received and add stock
"""
import functools
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from config import Config
from models.product import Product, ProductStatus
from models.supplier import Supplier
from models.purchase_order import OrderStatus
from models.requisition import RequisitionStatus
from procurement.engine import ProcurementEngine
from procurement.errors import ProcurementError
from procurement.store import new_id


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def _handle_errors(func):
    """Turn recoverable procurement errors into a message and exit status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (ProcurementError, ValueError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    return wrapper


def _engine(ctx: click.Context) -> ProcurementEngine:
    config = Config()
    if ctx.obj.get("db"):
        config.db_path = Path(ctx.obj["db"])
    if ctx.obj.get("model"):
        config.llm_model = ctx.obj["model"]
    return ProcurementEngine(config)


def _product(engine: ProcurementEngine, key: str) -> Product:
    """Find a product by id or SKU."""
    product = engine.store.get_product(key)
    if product is None:
        product = next(
            (p for p in engine.store.products if p.sku.upper() == key.upper()), None
        )
    if product is None:
        raise click.ClickException(f"No product with id or SKU {key!r}")
    return product


def _supplier_name(engine: ProcurementEngine, supplier_id: Optional[str]) -> str:
    if not supplier_id:
        return "(none)"
    supplier = engine.store.get_supplier(supplier_id)
    return supplier.name if supplier else f"{supplier_id} (unknown)"


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--db", default=None, type=click.Path(), help="Path to the SQLite database")
@click.option("--model", "-m", default=None, help="LLM model name")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db: Optional[str], model: Optional[str]) -> None:
    """Procurement tracker: stock, requisitions and purchase orders."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["db"] = db
    ctx.obj["model"] = model
    _setup_logging(verbose)


# --------------------------------------------------------------------
# Setup
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Verify that the LLM backend and database are ready."""
    engine = _engine(ctx)
    status = engine.check_setup()
    config = engine.config

    click.echo("\n=== Procurement Setup Check ===\n")
    llm = status["llm"]
    click.echo(f"  LLM endpoint:  {config.llm_base_url}")
    if llm["ok"]:
        model_status = "✓ available" if llm.get("model_available") else "✗ NOT found"
        click.echo(f"  Model '{config.llm_model}':  {model_status}")
    else:
        click.echo(f"  LLM backend:   ✗ NOT reachable ({llm.get('error')})")
        click.echo("  → Check LLM_BASE_URL, LLM_API_KEY in your environment")

    click.echo()
    db = status["database"]
    click.echo(f"  Database:      {db['path']}")
    for name, info in db["collections"].items():
        click.echo(f"    {name:<14} {info['count']:>5}")
    click.echo()


@cli.command()
@click.option("--file", "seed_file", default=None, type=click.Path(exists=True),
              help="JSON dataset to seed from (default: generate with the LLM)")
@click.option("--force", is_flag=True, help="Replace existing products and suppliers")
@click.pass_context
@_handle_errors
def seed(ctx: click.Context, seed_file: Optional[str], force: bool) -> None:
    """Replace products and suppliers with a demo dataset."""
    engine = _engine(ctx)
    if engine.store.products and not force:
        raise click.ClickException(
            f"Store already holds {len(engine.store.products)} products; use --force to replace them"
        )
    result = engine.seed_from_file(seed_file) if seed_file else engine.seed_from_provider()
    click.echo(f"Seeded {result.product_count} products and {result.supplier_count} suppliers.")
    if result.unresolved_suppliers:
        click.echo(f"⚠  No supplier match for: {', '.join(result.unresolved_suppliers)}")


# --------------------------------------------------------------------
# Products & suppliers
# --------------------------------------------------------------------

@cli.command()
@click.option("--all", "show_all", is_flag=True, help="Include INACTIVE products")
@click.pass_context
def products(ctx: click.Context, show_all: bool) -> None:
    """List products."""
    engine = _engine(ctx)
    rows = [p for p in engine.store.products if show_all or p.is_active]
    if not rows:
        click.echo("No products.")
        return
    for p in rows:
        flag = "LOW" if p.is_low_stock else "   "
        click.echo(
            f"  {flag} {p.sku:<12} {p.name[:32]:<32} {p.category[:16]:<16} "
            f"stock={p.stock_level:<5} reorder={p.reorder_point:<5} "
            f"price={p.unit_price:<9} {p.status.value}"
        )


@cli.command("update-product")
@click.argument("key")
@click.option("--name", default=None)
@click.option("--category", default=None)
@click.option("--stock", type=int, default=None, help="New stock level")
@click.option("--reorder-point", type=int, default=None)
@click.option("--price", default=None, help="New unit price")
@click.option("--supplier", "supplier_id", default=None, help="New supplier id")
@click.option("--status", type=click.Choice([s.value for s in ProductStatus]), default=None)
@click.pass_context
@_handle_errors
def update_product(ctx: click.Context, key: str, **changes) -> None:
    """Edit the product with id or SKU KEY."""
    engine = _engine(ctx)
    product = _product(engine, key)
    fields = {
        "name": changes["name"],
        "category": changes["category"],
        "stock_level": changes["stock"],
        "reorder_point": changes["reorder_point"],
        "unit_price": changes["price"],
        "supplier_id": changes["supplier_id"],
        "status": changes["status"],
    }
    fields = {k: v for k, v in fields.items() if v is not None}
    if not fields:
        raise click.ClickException("Nothing to change")
    updated = engine.workflow.update_product(
        Product.model_validate({**product.model_dump(), **fields})
    )
    click.echo(f"Updated {updated.sku}: {', '.join(sorted(fields))}")


@cli.command()
@click.pass_context
def suppliers(ctx: click.Context) -> None:
    """List suppliers."""
    engine = _engine(ctx)
    if not engine.store.suppliers:
        click.echo("No suppliers.")
        return
    for s in engine.store.suppliers:
        click.echo(f"  {s.id}  {s.name:<32} {s.contact_email:<32} lead={s.lead_time_days}d")


@cli.command("add-supplier")
@click.argument("name")
@click.option("--email", default="", help="Contact email")
@click.option("--lead-time", type=int, default=7, help="Lead time in days")
@click.pass_context
@_handle_errors
def add_supplier(ctx: click.Context, name: str, email: str, lead_time: int) -> None:
    """Add a supplier."""
    engine = _engine(ctx)
    supplier = engine.workflow.add_supplier(Supplier(
        id=new_id(), name=name, contact_email=email, lead_time_days=lead_time,
    ))
    click.echo(f"Added supplier {supplier.name} ({supplier.id})")


@cli.command("delete-supplier")
@click.argument("supplier_id")
@click.pass_context
@_handle_errors
def delete_supplier(ctx: click.Context, supplier_id: str) -> None:
    """Delete a supplier (products keep the dangling reference)."""
    engine = _engine(ctx)
    supplier = engine.workflow.delete_supplier(supplier_id)
    click.echo(f"Deleted supplier {supplier.name}")


# --------------------------------------------------------------------
# Reporting & analysis
# --------------------------------------------------------------------

@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def report(ctx: click.Context, as_json: bool) -> None:
    """Show stock value, low-stock count, and category breakdown."""
    engine = _engine(ctx)
    rep = engine.report()
    if as_json:
        click.echo(rep.model_dump_json(indent=2))
        return
    click.echo(f"\n  Active products:   {rep.product_count}")
    click.echo(f"  Inventory value:   {rep.total_value:.2f}")
    click.echo(f"  Low stock items:   {rep.low_stock_count}")
    click.echo(f"  Pending orders:    {rep.pending_orders}")
    click.echo(f"  Received orders:   {rep.received_orders}\n")
    for category, stat in rep.categories.items():
        click.echo(f"    {category:<24} {stat.count:>4} items   {stat.value:>12.2f}")
    click.echo()


@cli.command()
@click.pass_context
def analyze(ctx: click.Context) -> None:
    """Run AI replenishment analysis and add suggested requisitions."""
    engine = _engine(ctx)
    result = engine.analyze_replenishment()
    click.echo(f"\n  {result.summary}\n")
    if result.error:
        click.echo(f"  ✗ {result.error}", err=True)
    for req in result.requisitions:
        click.echo(
            f"  + {req.req_number}  {len(req.items)} item(s)  "
            f"supplier={_supplier_name(engine, req.suggested_supplier_id)}  {req.reason}"
        )
    if result.dropped_suggestions:
        click.echo(f"  ⚠  {result.dropped_suggestions} malformed suggestion(s) dropped")
    click.echo()


# --------------------------------------------------------------------
# Requisitions & orders
# --------------------------------------------------------------------

@cli.command()
@click.option("--all", "show_all", is_flag=True, help="Include converted and rejected")
@click.pass_context
def requisitions(ctx: click.Context, show_all: bool) -> None:
    """List purchase requisitions (PENDING only by default)."""
    engine = _engine(ctx)
    rows = [
        r for r in engine.store.requisitions
        if show_all or r.status == RequisitionStatus.PENDING
    ]
    if not rows:
        click.echo("No requisitions.")
        return
    for r in rows:
        click.echo(
            f"  {r.req_number:<9} {r.status.value:<10} {r.date_created:%Y-%m-%d}  "
            f"supplier={_supplier_name(engine, r.suggested_supplier_id)}  {r.reason}"
        )
        for item in r.items:
            product = engine.store.get_product(item.product_id)
            label = product.sku if product else f"{item.product_id} (unknown)"
            click.echo(f"      {label:<16} x{item.quantity:<6} @ {item.unit_price}")


@cli.command()
@click.argument("requisition")
@click.option("--supplier", "supplier_id", default=None,
              help="Supplier id (default: suggested supplier, else the first supplier)")
@click.pass_context
@_handle_errors
def convert(ctx: click.Context, requisition: str, supplier_id: Optional[str]) -> None:
    """Convert REQUISITION (id or PR number) into a draft purchase order."""
    engine = _engine(ctx)
    req = engine.store.find_requisition(requisition)
    if req is None:
        raise click.ClickException(f"No requisition {requisition!r}")
    if supplier_id is None:
        suggested = engine.store.get_supplier(req.suggested_supplier_id or "")
        fallback = engine.store.suppliers[0] if engine.store.suppliers else None
        chosen = suggested or fallback
        if chosen is None:
            raise click.ClickException("No suppliers available; pass --supplier")
        supplier_id = chosen.id

    result = engine.workflow.convert_to_order(req.id, supplier_id)
    order = result.order
    click.echo(
        f"{result.requisition.req_number} → {order.order_number}  "
        f"supplier={_supplier_name(engine, order.supplier_id)}  total={order.total_amount:.2f}"
    )
    if not result.supplier_known:
        click.echo(f"⚠  Supplier {supplier_id} is not in the supplier list")


@cli.command()
@click.argument("requisition")
@click.option("--reason", default=None, help="Why the requisition was rejected")
@click.pass_context
@_handle_errors
def reject(ctx: click.Context, requisition: str, reason: Optional[str]) -> None:
    """Reject a PENDING requisition."""
    engine = _engine(ctx)
    req = engine.store.find_requisition(requisition)
    if req is None:
        raise click.ClickException(f"No requisition {requisition!r}")
    rejected = engine.workflow.reject_requisition(req.id, reason)
    click.echo(f"{rejected.req_number} rejected")


@cli.command()
@click.pass_context
def orders(ctx: click.Context) -> None:
    """List purchase orders."""
    engine = _engine(ctx)
    if not engine.store.orders:
        click.echo("No purchase orders.")
        return
    for o in engine.store.orders:
        expected = f"{o.date_expected:%Y-%m-%d}" if o.date_expected else "-"
        click.echo(
            f"  {o.order_number:<9} {o.status.value:<9} {o.date_created:%Y-%m-%d}  "
            f"expected={expected:<10}  supplier={_supplier_name(engine, o.supplier_id)}  "
            f"total={o.total_amount:.2f}"
        )


def _print_status_change(result) -> None:
    order = result.order
    if not result.changed:
        click.echo(f"{order.order_number} is already {order.status.value}; nothing changed")
        return
    click.echo(f"{order.order_number}: {result.previous_status.value} → {order.status.value}")
    for adj in result.adjustments:
        click.echo(f"  + {adj.sku:<12} {adj.stock_before} → {adj.stock_after}")
    for product_id in result.skipped_product_ids:
        click.echo(f"  ⚠  product {product_id} not found; stock not updated")


@cli.command("set-status")
@click.argument("order")
@click.argument("status", type=click.Choice([s.value for s in OrderStatus], case_sensitive=False))
@click.pass_context
@_handle_errors
def set_status(ctx: click.Context, order: str, status: str) -> None:
    """Move ORDER (id or PO number) to STATUS."""
    engine = _engine(ctx)
    po = engine.store.find_order(order)
    if po is None:
        raise click.ClickException(f"No purchase order {order!r}")
    _print_status_change(engine.workflow.set_order_status(po.id, status.upper()))


@cli.command()
@click.argument("order")
@click.pass_context
@_handle_errors
def receive(ctx: click.Context, order: str) -> None:
    """Mark ORDER received and add its quantities to stock."""
    engine = _engine(ctx)
    po = engine.store.find_order(order)
    if po is None:
        raise click.ClickException(f"No purchase order {order!r}")
    _print_status_change(engine.workflow.receive_order(po.id))


# --------------------------------------------------------------------
# Audit & data transfer
# --------------------------------------------------------------------

@cli.command()
@click.argument("entity_id", required=False)
@click.option("--limit", default=50, show_default=True)
@click.pass_context
def audit(ctx: click.Context, entity_id: Optional[str], limit: int) -> None:
    """Show the audit log (for one entity, or the most recent entries)."""
    engine = _engine(ctx)
    entries = (
        engine.db.get_audit_log(entity_id) if entity_id
        else engine.db.get_recent_audit_log(limit=limit)
    )
    for e in entries:
        detail = json.loads(e["detail"]) if e["detail"] else {}
        click.echo(f"  {e['timestamp']}  {e.get('entity_id', entity_id)}  {e['action']:<20} {detail}")


@cli.command("export")
@click.argument("destination", type=click.Path())
@click.pass_context
def export_data(ctx: click.Context, destination: str) -> None:
    """Write all collections to a JSON file."""
    engine = _engine(ctx)
    engine.db.export_json(Path(destination))
    click.echo(f"✓ Exported to {destination}")


@cli.command("import")
@click.argument("source", type=click.Path(exists=True))
@click.pass_context
@_handle_errors
def import_data(ctx: click.Context, source: str) -> None:
    """Replace collections with those in a JSON export."""
    engine = _engine(ctx)
    imported = engine.db.read_export(Path(source))
    engine.store.import_collections(imported)
    click.echo(f"✓ Imported {', '.join(f'{k}={len(v)}' for k, v in imported.items())}")


if __name__ == "__main__":
    cli()
