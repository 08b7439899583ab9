import click

from settlement.services.activation import expire_entitlements
from settlement.services.orders import settle_order
from settlement.services.withdrawal import expire_stale_withdrawals


def register_commands(app):
    @app.cli.command("expire-withdrawals")
    def expire_withdrawals_command():
        """Expire withdrawal requests whose code was never confirmed."""
        count = expire_stale_withdrawals()
        click.echo(f"Expired {count} withdrawal request(s).")

    @app.cli.command("expire-entitlements")
    def expire_entitlements_command():
        """Mark past-due entitlements as expired."""
        count = expire_entitlements()
        click.echo(f"Expired {count} entitlement(s).")

    @app.cli.command("settle-order")
    @click.argument("order_id", type=int)
    def settle_order_command(order_id):
        """Mark a pending order paid and distribute its commissions."""
        result = settle_order(order_id)
        if result.already_settled:
            click.echo(f"Order {order_id} was already paid.")
        click.echo(
            f"Order {order_id}: {result.distributed_count} commission(s), "
            f"{result.distributed_total} satang."
        )
