"""Create or overwrite a Roblox -> Discord mapping through `POST /map`."""

import argparse
import json

import httpx


def main() -> None:
    """CLI entrypoint for manual account linking."""

    parser = argparse.ArgumentParser(description="Link a Roblox user id to a Discord user id.")
    parser.add_argument("--url", default="http://localhost:3000")
    parser.add_argument("--secret", default="dev_secret")
    parser.add_argument("--roblox-id", required=True)
    parser.add_argument("--discord-id", required=True)
    args = parser.parse_args()

    resp = httpx.post(
        f"{args.url}/map",
        headers={"x-shared-secret": args.secret},
        json={"robloxId": args.roblox_id, "discordId": args.discord_id},
        timeout=10.0,
    )
    resp.raise_for_status()
    print(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    main()
