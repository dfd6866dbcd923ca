"""
Closet Swap CLI - Command Line Interface for the marketplace core

Main entry point for all CLI commands.
"""

import json
from decimal import Decimal
from pathlib import Path

import click

from closet.utils.logger import setup_logging, get_logger


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory (default: CLOSET_DATA_DIR)")
@click.option("--log-file", is_flag=True, help="Also log to closet.log under CLOSET_LOG_DIR")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir, log_file):
    """Closet Swap - second-hand marketplace engine"""
    import logging

    from closet.core.config import load_config

    cfg = load_config()
    if data_dir is not None:
        cfg.data_dir = Path(data_dir).expanduser()

    setup_logging(
        level=logging.DEBUG if debug else None,
        log_dir=str(cfg.log_dir),
        log_to_file=log_file,
    )

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


def _demo_store(cfg):
    from closet.core.catalog.models import utcnow
    from closet.core.catalog.seed import build_demo_catalog
    from closet.core.catalog.store import CatalogStore

    now = utcnow()
    return CatalogStore(build_demo_catalog(now), config=cfg), now


# =============================================================================
# Settlement Command
# =============================================================================


@cli.command("settle")
@click.option("--winner", "winner", required=True, help="Winning bid as MIN:MAX")
@click.option("--bid", "bids", multiple=True, help="Competing bid as MIN:MAX")
@click.option("--reserve", type=str, default=None, help="Reserve price")
@click.option("--increment", type=str, default=None, help="Step over the runner-up (default: CLOSET_BID_INCREMENT)")
@click.pass_context
def settle_cmd(ctx, winner, bids, reserve, increment):
    """Compute the clearing price of a set of bids"""
    from closet.core.auction import compute_clearing_price, compute_fee
    from closet.core.catalog.models import PurchaseRequest, utcnow
    from closet.core.errors import MarketplaceError

    cfg = ctx.obj["config"]

    def parse(spec: str, rid: str) -> PurchaseRequest:
        try:
            low, high = (Decimal(x) for x in spec.split(":", 1))
        except (ValueError, ArithmeticError):
            raise click.BadParameter(f"expected MIN:MAX, got {spec!r}") from None
        return PurchaseRequest(rid, "cli", rid, low, high, utcnow())

    winning = parse(winner, "winner")
    pool = [winning] + [parse(b, f"bid-{i}") for i, b in enumerate(bids)]

    try:
        price = compute_clearing_price(
            winning,
            pool,
            Decimal(reserve) if reserve is not None else None,
            Decimal(increment) if increment is not None else cfg.bid_increment,
        )
    except MarketplaceError as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Clearing price: {price}")
    click.echo(f"Seller fee:     {compute_fee(price, cfg.fee_rate)}")


# =============================================================================
# Browse Command
# =============================================================================


@cli.command("browse")
@click.option("--viewer", default=None, help="Viewer user id (anonymous if omitted)")
@click.option(
    "--sort",
    "sort_mode",
    default="recommended",
    type=click.Choice(["recommended", "relevance", "newest", "price-asc", "price-desc"]),
)
@click.option("--category", default=None, help="Category filter")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def browse_cmd(ctx, viewer, sort_mode, category, as_json):
    """Rank the demo catalog for a viewer"""
    from closet.core.catalog.seed import DEMO_WISHLISTS
    from closet.core.ranking import BrowseFilter, SortMode, browse, recommended_score

    store, now = _demo_store(ctx.obj["config"])

    counts = {}
    for items in DEMO_WISHLISTS.values():
        for pid in items:
            counts[pid] = counts.get(pid, 0) + 1

    context = store.ranking_context(now, counts)
    listings = browse(
        store.visible_products(viewer),
        BrowseFilter(category=category),
        SortMode(sort_mode),
        context,
    )

    if as_json:
        click.echo(json.dumps([p.public_view() for p in listings], default=str, indent=2))
        return

    for p in listings:
        click.echo(
            f"  {p.id:8} {p.title:24} ${p.price:>7}  score={recommended_score(p, context):.1f}"
        )
    if not listings:
        click.echo("No listings visible.")


# =============================================================================
# Sweep Command
# =============================================================================


@cli.command("sweep")
@click.option("--days", default=0, type=int, help="Days to fast-forward before sweeping")
@click.pass_context
def sweep_cmd(ctx, days):
    """Run the expiry sweep on the demo catalog"""
    from datetime import timedelta

    store, now = _demo_store(ctx.obj["config"])
    expired = store.sweep_expired(now + timedelta(days=days))
    click.echo(f"Expired {len(expired)} listing(s): {', '.join(expired) or '-'}")


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.pass_context
def demo(ctx):
    """Walk through bidding, settlement, review and moderation"""
    from closet.core.catalog.models import ModerationAction
    from closet.core.catalog.seed import DEMO_WISHLISTS
    from closet.core.errors import ReserveNotMet
    from closet.core.storage import PreferenceStore

    logger = get_logger("cli")
    store, now = _demo_store(ctx.obj["config"])

    click.echo("=" * 60)
    click.echo("  CLOSET SWAP - DEMO")
    click.echo("=" * 60)
    click.echo()

    ctx.obj["config"].ensure_dirs()
    prefs = PreferenceStore.from_config(ctx.obj["config"])
    for user_id, items in DEMO_WISHLISTS.items():
        for pid in items:
            prefs.add_to_wishlist(user_id, pid)
    click.echo(f"Wishlists loaded: {prefs.wishlist_counts()}")
    click.echo()

    click.echo("Visibility:")
    for viewer in (None, "user-buyer-1", "user-buyer-2", "user-admin-1"):
        ids = [p.id for p in store.visible_products(viewer)]
        click.echo(f"  {viewer or 'anonymous':14} sees {ids}")
    click.echo()

    click.echo("Jane tries to accept John's offer on the boots (reserve 160)...")
    try:
        store.accept_bid("user-seller-1", "req-1", now)
    except ReserveNotMet:
        click.echo("  Refused: offer does not meet the reserve price")

    click.echo("Jane accepts Alice's offer instead...")
    txn = store.accept_bid("user-seller-1", "req-2", now)
    click.echo(f"  Sold for ${txn.price} (fee ${txn.fee}, shipping ${txn.shipping_cost})")
    click.echo(f"  Jane now owes ${store.get_user('user-seller-1').fees_owed}")
    click.echo()

    review = store.add_review("user-buyer-2", txn.id, 5, "Boots arrived in perfect shape", now)
    click.echo(f"Alice reviewed Jane: {review.rating}/5")
    click.echo()

    click.echo("Admin confirms the report on the corset...")
    store.review_reported_product("user-admin-1", "prod-4", ModerationAction.CONFIRM)
    click.echo(f"  Reported queue: {[p.id for p in store.reported_products()]}")
    click.echo()

    click.echo(f"Stats: {store.stats()}")
    prefs.close()
    logger.debug("Demo finished")


if __name__ == "__main__":
    cli()
