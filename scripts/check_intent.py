"""Print the processor-side status of one payment intent."""

import argparse
import json

from paygate.gateway.client import GatewayClient
from paygate.gateway.schemas import GatewayConfig


def main() -> None:
    """CLI entrypoint for ad-hoc intent verification."""

    parser = argparse.ArgumentParser(description="Fetch an Airwallex payment intent by id.")
    parser.add_argument("intent_id")
    parser.add_argument("--client-id", required=True)
    parser.add_argument("--api-key", required=True)
    parser.add_argument("--environment", choices=["sandbox", "live"], default="sandbox")
    parser.add_argument("--timeout", type=float, default=30.0)
    args = parser.parse_args()

    config = GatewayConfig(client_id=args.client_id, api_key=args.api_key, environment=args.environment)
    with GatewayClient(config, timeout=args.timeout) as client:
        intent = client.verify_intent(args.intent_id)
    print(json.dumps(intent.model_dump(mode="json"), indent=2))
    raise SystemExit(0 if intent.succeeded else 1)


if __name__ == "__main__":
    main()
