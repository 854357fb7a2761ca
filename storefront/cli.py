# storefront/cli.py
import click
import pandas as pd
from werkzeug.security import generate_password_hash
from .extensions import db
from .model import User, Product, Order, LoyaltyAccount
from .services import coupon_service
from .services.loyalty_service import verify_ledger

@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
def create_admin(email, password, name):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    u = User(email=email, name=name, password_hash=generate_password_hash(password), role="admin")
    db.session.add(u); db.session.commit()
    click.echo(f"Admin created: {u.id} {u.email}")

@click.command("create-coupon")
@click.argument("code")
@click.option("--type", "discount_type", type=click.Choice(["percentage", "fixed"]), default="percentage")
@click.option("--value", type=int, required=True)
@click.option("--min-order", type=int, default=0)
@click.option("--limit", type=int, default=100)
@click.option("--max-discount", type=int, default=None)
def create_coupon(code, discount_type, value, min_order, limit, max_discount):
    c = coupon_service.create_coupon_from_payload({
        "code": code,
        "discount_type": discount_type,
        "value": value,
        "min_order_value": min_order,
        "usage_limit": limit,
        "max_discount": max_discount,
    })
    click.echo(f"Coupon created: {c.code} {c.discount_type} {c.value}")

def _read_table(path):
    if path.lower().endswith((".xlsx", ".xls")):
        return pd.read_excel(path)
    return pd.read_csv(path)

@click.command("import-stock")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def import_stock(path):
    """Upsert products from a CSV/XLSX with columns: product_id (optional), sku, name, price, stock."""
    df = _read_table(path)
    df.columns = df.columns.str.strip().str.lower()
    missing = {"name", "price", "stock"} - set(df.columns)
    if missing:
        raise click.ClickException(f"missing columns: {', '.join(sorted(missing))}")

    created = updated = 0
    for _, row in df.iterrows():
        product = None
        if "product_id" in df.columns and pd.notnull(row["product_id"]):
            product = db.session.get(Product, int(row["product_id"]))
        if product is None and "sku" in df.columns and pd.notnull(row["sku"]):
            product = Product.query.filter_by(sku=str(row["sku"]).strip()).first()
        if product is None:
            product = Product()
            db.session.add(product)
            created += 1
        else:
            updated += 1
        if "sku" in df.columns and pd.notnull(row["sku"]):
            product.sku = str(row["sku"]).strip()
        product.name = str(row["name"]).strip()
        product.price = int(row["price"])
        product.stock = int(row["stock"])
    db.session.commit()
    click.echo(f"{created} products created, {updated} updated from {path}")

@click.command("export-orders")
@click.argument("path", type=click.Path(dir_okay=False))
def export_orders(path):
    rows = [
        {
            "Order ID": o.id,
            "User ID": o.user_id,
            "Status": o.status,
            "Subtotal": o.subtotal,
            "Bulk Discount": o.bulk_discount,
            "Coupon": o.coupon_code,
            "Coupon Discount": o.coupon_discount,
            "Points Redeemed": o.points_redeemed,
            "Points Discount": o.points_discount,
            "Total": o.total,
            "Created At": o.created_at,
        }
        for o in Order.query.order_by(Order.created_at.asc()).all()
    ]
    df = pd.DataFrame(rows)
    if path.lower().endswith(".xlsx"):
        df.to_excel(path, index=False)
    else:
        df.to_csv(path, index=False)
    click.echo(f"{len(rows)} orders exported to {path}")

@click.command("verify-ledger")
@click.option("--user-id", type=int, default=None)
def verify_ledger_cmd(user_id):
    q = LoyaltyAccount.query
    if user_id is not None:
        q = q.filter_by(user_id=user_id)
    bad = 0
    for acct in q.all():
        for problem in verify_ledger(acct):
            bad += 1
            click.echo(f"user {acct.user_id}: {problem}")
    if bad:
        raise click.ClickException(f"{bad} ledger problem(s) found")
    click.echo("ledger consistent")

def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(create_coupon)
    app.cli.add_command(import_stock)
    app.cli.add_command(export_orders)
    app.cli.add_command(verify_ledger_cmd)
