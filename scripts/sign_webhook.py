"""Sign a JSON webhook payload and POST it to the callback service.

Useful for duplicate-delivery and signature-rejection testing against a local
stack without the processor in the loop.
"""

import argparse
import json
from pathlib import Path

import httpx

from paygate.gateway.signatures import build_signature_header


def main() -> None:
    """Parse CLI args, sign one payload, and deliver it."""

    parser = argparse.ArgumentParser(description="Send a signed webhook to the callback service.")
    parser.add_argument("--callback-url", default="http://localhost:8002/webhooks/airwallex")
    parser.add_argument("--secret", required=True, help="Webhook secret configured for the account")
    parser.add_argument("--json", dest="json_inline", default=None, help="Inline JSON payload")
    parser.add_argument("--file", dest="json_file", default=None, help="Path to JSON file")
    parser.add_argument("--repeat", type=int, default=1, help="Deliver the same payload N times")
    parser.add_argument("--tamper", action="store_true", help="Corrupt the signature to test rejection")
    args = parser.parse_args()

    if bool(args.json_inline) == bool(args.json_file):
        raise SystemExit("Provide exactly one of --json or --file")

    raw = args.json_inline if args.json_inline else Path(args.json_file).read_text()
    # Validate only; the exact bytes are what gets signed.
    json.loads(raw)
    body = raw.encode("utf-8")
    header = build_signature_header(args.secret, body)
    if args.tamper:
        header = header[:-4] + "0000"

    for attempt in range(1, args.repeat + 1):
        resp = httpx.post(
            args.callback_url,
            content=body,
            headers={"content-type": "application/json", "x-airwallex-signature": header},
            timeout=30.0,
        )
        print(f"delivery={attempt} status={resp.status_code} body={resp.text}")


if __name__ == "__main__":
    main()
