"""Post one payment webhook to a running passdrop instance.

Useful for manual delivery checks and duplicate-receipt testing.
"""

import argparse
from uuid import uuid4

import httpx


def main() -> None:
    """Parse CLI args and send one payment event."""

    parser = argparse.ArgumentParser(description="Send a payment webhook to passdrop.")
    parser.add_argument("--url", default="http://localhost:3000")
    parser.add_argument("--secret", default="dev_secret")
    parser.add_argument("--user-id", required=True, help="Roblox user id of the buyer")
    parser.add_argument("--product-id", required=True)
    parser.add_argument("--receipt-id", default=None, help="Defaults to a random id")
    parser.add_argument("--discord-id", default=None)
    parser.add_argument("--username", default=None)
    args = parser.parse_args()

    payload = {
        "userId": args.user_id,
        "productId": args.product_id,
        "receiptId": args.receipt_id or f"manual-{uuid4()}",
    }
    if args.discord_id:
        payload["discordId"] = args.discord_id
    if args.username:
        payload["username"] = args.username

    resp = httpx.post(
        f"{args.url}/payment",
        headers={"x-shared-secret": args.secret},
        json=payload,
        timeout=30.0,
    )
    print(f"receipt={payload['receiptId']} status={resp.status_code} body={resp.text}")


if __name__ == "__main__":
    main()
