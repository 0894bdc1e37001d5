"""Create (or update) an account, its Airwallex credentials and one payable.

Intended for local stacks; production configuration is owned by the host.
"""

import argparse
from decimal import Decimal

from sqlalchemy import select

from paygate.common.db import SessionLocal
from paygate.host.models import GatewayConfiguration, Payable, PaymentAccount


def seed(args: argparse.Namespace) -> int:
    """Upsert rows and return the account id."""

    with SessionLocal() as db:
        account = db.execute(
            select(PaymentAccount).where(PaymentAccount.name == args.account_name)
        ).scalar_one_or_none()
        if account is None:
            account = PaymentAccount(name=args.account_name, enabled=True)
            db.add(account)
            db.flush()

        config = db.execute(
            select(GatewayConfiguration).where(
                GatewayConfiguration.account_id == account.account_id,
                GatewayConfiguration.gateway == args.gateway,
            )
        ).scalar_one_or_none()
        if config is None:
            config = GatewayConfiguration(account_id=account.account_id, gateway=args.gateway)
            db.add(config)
        config.client_id = args.client_id
        config.api_key = args.api_key
        config.webhook_secret = args.webhook_secret
        config.environment = args.environment
        config.integration_mode = args.mode
        config.enabled = True

        payable = db.execute(
            select(Payable).where(
                Payable.component == args.component,
                Payable.payment_area == args.payment_area,
                Payable.item_id == args.item_id,
            )
        ).scalar_one_or_none()
        if payable is None:
            payable = Payable(component=args.component, payment_area=args.payment_area, item_id=args.item_id)
            db.add(payable)
        payable.account_id = account.account_id
        payable.amount = Decimal(args.amount)
        payable.currency = args.currency.upper()
        payable.description = args.description
        db.commit()
        return account.account_id


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a payable with Airwallex gateway credentials.")
    parser.add_argument("--account-name", default="default")
    parser.add_argument("--gateway", default="airwallex")
    parser.add_argument("--client-id", required=True)
    parser.add_argument("--api-key", required=True)
    parser.add_argument("--webhook-secret", default="")
    parser.add_argument("--environment", choices=["sandbox", "live"], default="sandbox")
    parser.add_argument("--mode", choices=["redirect", "sdk"], default="redirect")
    parser.add_argument("--component", default="enrol_fee")
    parser.add_argument("--payment-area", default="fee")
    parser.add_argument("--item-id", type=int, required=True)
    parser.add_argument("--amount", required=True)
    parser.add_argument("--currency", default="USD")
    parser.add_argument("--description", default="")
    args = parser.parse_args()

    account_id = seed(args)
    print(f"Seeded payable {args.component}/{args.payment_area}/{args.item_id} on account_id={account_id}")


if __name__ == "__main__":
    main()
