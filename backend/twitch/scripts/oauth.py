"""Print the authorize URLs for the bot account and for broadcasters.

Only needs CLIENT_ID (and optionally OAUTH_REDIRECT_URI) from twitch/.env,
so it works before the database is configured.

Usage: python -m twitch.scripts.oauth
"""

import os
import sys
from urllib.parse import quote

from dotenv import load_dotenv

from twitch.core.config import BOT_SCOPES, BROADCASTER_SCOPES, TWITCH_DIR

DEFAULT_REDIRECT_URI = "http://localhost:4343/oauth/callback"


def gen_url(cid: str, uri: str, scopes: list[str]) -> str:
    s = "+".join(s.replace(":", "%3A") for s in scopes)
    return (
        f"https://id.twitch.tv/oauth2/authorize?client_id={cid}"
        f"&redirect_uri={quote(uri, safe='')}&response_type=code&scope={s}"
    )


def main() -> None:
    load_dotenv(TWITCH_DIR / ".env", encoding="utf-8")

    cid = os.getenv("CLIENT_ID")
    if not cid:
        print("Error: CLIENT_ID not set")
        sys.exit(1)
    uri = os.getenv("OAUTH_REDIRECT_URI", DEFAULT_REDIRECT_URI)

    print("Bot account (chat):")
    print(gen_url(cid, uri, BOT_SCOPES))
    print()
    print("Broadcaster (redemptions):")
    print(gen_url(cid, uri, BROADCASTER_SCOPES))


if __name__ == "__main__":
    main()
