"""HTML pages that navigate the browser on the client side."""

import html
import json

REDIRECT_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="referrer" content="no-referrer">
    <meta http-equiv="refresh" content="0; url={url_attr}">
    <title>{title}</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
            display: flex;
            justify-content: center;
            align-items: center;
            height: 100vh;
            margin: 0;
        }}
        p {{
            color: #718096;
        }}
    </style>
</head>
<body>
    <p>{message} <a href="{url_attr}">Continue</a></p>
    <script>window.location.replace({url_js});</script>
</body>
</html>
"""

# Headers for every browser-facing response that carries or consumes
# handshake material.
NO_STORE_HEADERS = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
    "Referrer-Policy": "no-referrer",
}


def render_redirect_page(
    url: str,
    title: str = "Redirecting",
    message: str = "Redirecting...",
) -> str:
    # json.dumps does not escape "</", which would end the script block
    url_js = json.dumps(url).replace("</", "<\\/")
    return REDIRECT_PAGE_TEMPLATE.format(
        url_attr=html.escape(url, quote=True),
        url_js=url_js,
        title=html.escape(title),
        message=html.escape(message),
    )
