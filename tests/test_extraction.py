"""Tests for recovering field values from already rendered receipts."""

import pytest

from receiptserver.catalog import get_template
from receiptserver.extraction import (
    DIALECTS,
    RECEIPT,
    apply_edits,
    detect_dialect,
    extract,
    resolve_dialect,
)
from receiptserver.templating import render_template

BEACONS_VALUES = {
    "BUYER_NAME": "Ana Lima",
    "PRODUCT_NAME": "Growth Course",
    "DATE": "Jan 05, 2025",
    "ORDER_ID": "BX-1001",
    "PRICE": "$49.00",
    "SELLER_NAME": "Maya",
    "SELLER_LOGO_URL": "https://cdn.example.com/logo.png",
    "PRODUCT_IMAGE_URL": "https://cdn.example.com/product.png",
    "ACCESS_LINK": "https://example.com/access/1",
    "CUSTOMER_PORTAL_URL": "https://example.com/portal",
}

STANSTORE_VALUES = {
    "RECEIPT_ID": "1860-9282",
    "AMOUNT_PAID": "$29.00",
    "DATE_PAID": "Jan 05, 2025, 3:04:05 PM",
    "PAYMENT_METHOD": "mastercard",
    "CARD_LAST4": "4242",
    "PRODUCT_NAME": "Coaching Call",
    "BUYER_NAME": "Ana Lima",
    "PRODUCT_PRICE": "$29.00",
    "TOTAL_AMOUNT": "$29.00",
    "SELLER_EMAIL": "maya@example.com",
}

FANBASIS_VALUES = {
    "PRODUCT_NAME": "Mastery Course",
    "SELLER_NAME": "Maya",
    "BUYER_NAME": "Ana Lima",
    "BUYER_EMAIL": "ana@example.com",
    "DATE": "01/05/2025",
    "PRICE": "$99.00",
    "SUBTOTAL": "$99.00",
    "TOTAL": "$99.00",
}


@pytest.mark.parametrize(
    "template_id, values",
    [
        ("beacons", BEACONS_VALUES),
        ("stanstore", STANSTORE_VALUES),
        ("fanbasis", FANBASIS_VALUES),
    ],
)
def test_extract_recovers_rendered_platform_receipt(template_id, values):
    html = render_template(get_template(template_id), values)

    assert detect_dialect(html).name == template_id
    assert extract(html) == values


def test_extract_unknown_layout_uses_generic_table():
    html = (
        "<h1>Receipt</h1>"
        "<p>Thanks for your order, Sam!</p>"
        "<p><strong>Photo Pack</strong></p>"
        "<p>Date: 3/14/2024</p>"
        "<p>Receipt #A-77</p>"
        "<p>Subtotal: $12.50</p>"
        "<p>Total: $14.00</p>"
        '<a href="mailto:shop@example.com">shop</a>'
    )

    data = extract(html)

    assert detect_dialect(html) is RECEIPT
    assert data["BUYER_NAME"] == "Sam"
    assert data["PRODUCT_NAME"] == "Receipt"
    assert data["DATE"] == "3/14/2024"
    assert data["RECEIPT_ID"] == "A-77"
    assert data["PRICE"] == "$12.50"
    assert data["SUBTOTAL"] == "$12.50"
    assert data["TOTAL"] == "$14.00"
    assert data["SELLER_EMAIL"] == "shop@example.com"


def test_extract_generic_order_id_ignores_attribute_names():
    html = '<table width="600" hidden><tr><td>Order #A-1</td><td>paid</td></tr></table>'

    assert extract(html)["ORDER_ID"] == "A-1"
    assert apply_edits(html, {"ORDER_ID": "B-2"}) == html.replace("A-1", "B-2")


def test_resolve_dialect():
    html = render_template(get_template("fanbasis"), FANBASIS_VALUES)

    assert resolve_dialect(html).name == "fanbasis"
    assert resolve_dialect(html, "beacons") is DIALECTS["beacons"]
    assert resolve_dialect(html, "nope") is RECEIPT
    assert resolve_dialect(html, RECEIPT) is RECEIPT


def test_extract_generic_images():
    html = (
        '<img src="https://x.test/avatar.png" alt="profile">'
        '<img src="https://x.test/item.png" alt="product shot">'
    )

    data = extract(html)

    assert data["SELLER_LOGO_URL"] == "https://x.test/avatar.png"
    assert data["PRODUCT_IMAGE_URL"] == "https://x.test/item.png"


def test_extract_first_match_only():
    data = extract("<p>$1.00</p><p>$2.00</p>", "receipt")

    assert data["PRICE"] == "$1.00"


def test_extract_with_explicit_dialect():
    html = render_template(get_template("fanbasis"), FANBASIS_VALUES)

    assert extract(html, DIALECTS["beacons"]) == {}
    assert extract(html, "fanbasis") == FANBASIS_VALUES


def test_extract_unknown_dialect_name_falls_back():
    assert extract("<p>Thanks for your order, Jo!</p>", "nope") == {"BUYER_NAME": "Jo"}


@pytest.mark.parametrize("html", [None, "", 42, "<p>nothing here</p>"])
def test_extract_never_fails(html):
    assert extract(html) == {}


def test_extract_from_empty_render_recovers_nothing():
    # Unfilled placeholders are not values; an empty render recovers nothing
    html = render_template(get_template("fanbasis"), {})

    assert extract(html) == {}


# ============================================================================
# EDITING A RENDERED RECEIPT
# ============================================================================


def test_apply_edits_replaces_text_everywhere():
    html = render_template(get_template("beacons"), BEACONS_VALUES)

    out = apply_edits(html, {"PRODUCT_NAME": "Pro Course", "BUYER_NAME": "Bea"})

    assert "Growth Course" not in out
    assert out.count("Pro Course") == 2
    assert "Thanks for your order, Bea!" in out


def test_apply_edits_swaps_image_once():
    html = render_template(get_template("beacons"), BEACONS_VALUES)

    out = apply_edits(html, {"SELLER_LOGO_URL": "https://new.example.com/logo.png"})

    assert 'src="https://new.example.com/logo.png"' in out
    assert "https://cdn.example.com/logo.png" not in out


def test_apply_edits_ignores_unknown_and_empty_values():
    html = "<p>Thanks for your order, Jo!</p>"

    assert apply_edits(html, {"SELLER_NAME": "Nobody", "BUYER_NAME": ""}) == html


def test_apply_edits_uses_given_extraction():
    out = apply_edits("<p>old and old</p>", {"X": "new"}, {"X": "old"})

    assert out == "<p>new and new</p>"


def test_apply_edits_bad_html():
    assert apply_edits(None, {"X": "y"}) == ""
