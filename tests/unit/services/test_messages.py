"""Unit tests for message rendering."""

from restock_service.services.messages import (
    render_follow_up_link,
    render_limit_notice,
    render_restock_link,
    render_restock_ping,
    storefront_link,
)


class TestStorefrontLink:
    def test_built_from_ids(self) -> None:
        assert storefront_link("shop1", "p1", "v1") == "https://shop1/products/p1?variant=v1"

    def test_product_only(self) -> None:
        assert storefront_link("shop1", "p1", None) == "https://shop1/products/p1"

    def test_captured_url_is_decoded_and_preferred(self) -> None:
        url = storefront_link("shop1", "p1", "v1", "https%3A%2F%2Fshop1%2Fproducts%2Fhoodie")
        assert url == "https://shop1/products/hoodie"


def test_restock_link_mentions_title_variant_and_link() -> None:
    body = render_restock_link("shop1", "p1", "v1", title="Blue Hoodie")

    assert body.splitlines() == [
        "🔔 Back in stock: Blue Hoodie",
        "Variant ID: v1",
        "Grab it before it sells out again: https://shop1/products/p1?variant=v1",
    ]


def test_restock_ping_asks_for_reply_without_link() -> None:
    body = render_restock_ping("shop1", title=None)

    assert "your item" in body
    assert "Reply YES" in body
    assert "https://" not in body


def test_follow_up_link() -> None:
    assert render_follow_up_link("shop1", "p1", None, title="Mug") == (
        "Here is your link to Mug: https://shop1/products/p1"
    )


def test_limit_notice_links_upgrade() -> None:
    subject, html = render_limit_notice("shop1", "basic", "https://billing.example/upgrade")

    assert "limit" in subject
    assert "shop1" in html
    assert "basic" in html
    assert 'href="https://billing.example/upgrade"' in html
