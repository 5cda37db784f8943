"""
CLI Commands for payment housekeeping.

There is no background scheduler; run these from cron:

# Fail payouts that never got a Safaricom callback (hourly)
0 * * * * cd /app && flask payments expire-stale --hours=24
"""
from datetime import datetime, timedelta

import click
from flask.cli import with_appcontext

from ..models import PaymentStatus, PaymentTransaction
from ..services.reward_dispatcher import RewardDispatcher
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


@click.group('payments')
def payments_cli():
    """Payment transaction commands."""
    pass


@payments_cli.command('expire-stale')
@click.option('--hours', type=int, default=24, show_default=True,
              help='Fail transactions still open after this many hours')
@click.option('--dry-run', is_flag=True, help='Preview without changing anything')
@with_appcontext
def expire_stale(hours, dry_run):
    """
    Fail payment transactions (and their rewards) stuck in pending/initiated.

    Failed rewards can be selected again for dispatch.
    """
    if hours < 1:
        raise click.BadParameter('must be at least 1', param_hint='--hours')

    older_than = timedelta(hours=hours)

    if dry_run:
        cutoff = datetime.utcnow() - older_than
        stale = PaymentTransaction.query.filter(
            PaymentTransaction.status.in_(PaymentStatus.open_states()),
            PaymentTransaction.created_at < cutoff
        ).order_by(PaymentTransaction.created_at).all()

        click.echo(f"[DRY RUN] {len(stale)} open transactions older than {hours}h")
        for transaction in stale[:20]:
            click.echo(
                f"  {transaction.id}  reward={transaction.reward_id}  "
                f"{transaction.status}  since {transaction.created_at:%Y-%m-%d %H:%M}"
            )
        return

    expired = RewardDispatcher().expire_stale(older_than)
    logger.info('expire-stale: %d transactions expired', expired)
    click.echo(f"Expired {expired} transactions older than {hours}h")


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(payments_cli)
