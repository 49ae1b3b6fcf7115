"""Standalone Frame helpers extracted from the main app for unit testing.

This separate module avoids importing FastAPI and other runtime dependencies so
unit tests can run in minimal environments.
"""

from html import escape
from typing import Any, Dict, Optional

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def render_frame_html(title: str, image_url: str, button_text: str, post_url: str) -> str:
    """Build the HTML document whose meta tags describe a Farcaster Frame.

    Feed clients only read the <head>: Open Graph tags for the link preview and
    the ``fc:frame*`` tags for the interactive card.
    """

    title = escape(title, quote=True)
    image_url = escape(image_url, quote=True)
    button_text = escape(button_text, quote=True)
    post_url = escape(post_url, quote=True)

    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width" />
    <meta property="og:title" content="{title}" />
    <meta property="og:image" content="{image_url}" />
    <meta property="fc:frame" content="vNext" />
    <meta property="fc:frame:image" content="{image_url}" />
    <meta property="fc:frame:button:1" content="{button_text}" />
    <meta name="fc:frame:post_url" content="{post_url}" />
  </head>
</html>
"""


def extract_verified_address(payload: Any) -> Optional[str]:
    """Pull the first verified address out of a Neynar bulk-user response.

    Expected shape: ``{"users": [{"verifications": ["0x...", ...]}]}``.
    Returns None when the payload has no user or the user has no verification.
    """

    if not isinstance(payload, dict):
        return None

    users = payload.get("users")
    if not isinstance(users, list) or not users:
        return None

    user: Dict[str, Any] = users[0] if isinstance(users[0], dict) else {}
    verifications = user.get("verifications")
    if not isinstance(verifications, list) or not verifications:
        return None

    address = verifications[0]
    if address is None:
        return None
    return str(address)
