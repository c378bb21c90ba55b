"""Message rendering.

One render function per message kind; every send path goes through these.
"""

from urllib.parse import unquote

DEFAULT_TITLE = "your item"


def storefront_link(
    account_id: str,
    product_id: str | None,
    variant_id: str | None,
    product_url: str | None = None,
) -> str:
    """Deep link to the product page, preferring the URL captured at subscribe time."""
    if product_url:
        return unquote(product_url)
    link = f"https://{account_id}"
    if product_id:
        link += f"/products/{product_id}"
        if variant_id:
            link += f"?variant={variant_id}"
    return link


def render_restock_link(
    account_id: str,
    product_id: str | None,
    variant_id: str | None,
    *,
    title: str | None = None,
    product_url: str | None = None,
) -> str:
    """Direct restock message with the link, for channels that allow free-form first contact."""
    lines = [f"🔔 Back in stock: {title or DEFAULT_TITLE}"]
    if variant_id:
        lines.append(f"Variant ID: {variant_id}")
    lines.append(
        "Grab it before it sells out again: "
        + storefront_link(account_id, product_id, variant_id, product_url)
    )
    return "\n".join(lines)


def render_restock_ping(account_id: str, *, title: str | None = None) -> str:
    """First-contact ping asking the subscriber to opt in to the link."""
    return (
        f"Good news from {account_id}! {title or DEFAULT_TITLE} is back in stock. "
        "Reply YES and we'll send you the link."
    )


def render_follow_up_link(
    account_id: str,
    product_id: str | None,
    variant_id: str | None,
    *,
    title: str | None = None,
    product_url: str | None = None,
) -> str:
    """Link sent after the subscriber answered a ping affirmatively."""
    link = storefront_link(account_id, product_id, variant_id, product_url)
    return f"Here is your link to {title or DEFAULT_TITLE}: {link}"


def render_limit_notice(account_id: str, plan: str, upgrade_url: str) -> tuple[str, str]:
    """Subject and HTML body of the "limit reached" email to the account owner."""
    subject = "You've reached your Back in Stock alert limit"
    html = (
        "<p>Hi there,</p>"
        f"<p>Your store <strong>{account_id}</strong> has reached the monthly alert limit "
        f"for your current plan (<strong>{plan}</strong>).</p>"
        f'<p>To keep sending WhatsApp alerts, please <a href="{upgrade_url}">upgrade your plan</a>.</p>'
        "<p>Thanks,<br/>Back in Stock Alerts</p>"
    )
    return subject, html
