# Overview: Flask API routes for checkout; parses input and returns JSON responses.

# backend/backoffice/routes/checkout.py
"""Checkout API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import (
    AuthorizationError,
    CheckoutError,
    ConflictError,
    PartialCommitFailure,
    PersistenceUnavailable,
    ValidationError,
    VoucherError,
    CheckoutCancelled,
)
from ..decorators import require_auth, require_roles
from ..identity import get_current_user
from ..services import settings_service
from ..services.cart import Cart
from ..services.catalog_service import CatalogIndex, SqlProductStore
from ..services.checkout_service import CheckoutRequest, build_orchestrator, parse_payment
from ..services.pricing_service import compute_totals
from ..services.voucher_service import resolve_voucher


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def error_status(exc: CheckoutError) -> int:
    if isinstance(exc, AuthorizationError):
        return 403 if exc.authenticated else 401
    if isinstance(exc, (ValidationError, CheckoutCancelled)):
        return 400
    if isinstance(exc, (VoucherError, ConflictError)):
        return 409
    if isinstance(exc, PersistenceUnavailable):
        return 503
    if isinstance(exc, PartialCommitFailure):
        return 500
    return 400


def _load_catalog() -> CatalogIndex:
    catalog = CatalogIndex(SqlProductStore())
    catalog.refresh(timeout=current_app.config.get("PERSISTENCE_TIMEOUT_SECONDS"))
    return catalog


def _build_cart(items, catalog: CatalogIndex) -> Cart:
    """
    Rebuild the cart server-side from product ids and quantities.

    Prices come from the catalog as it stands now; client prices are ignored.
    """
    if items is None:
        items = []
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    cart = Cart()
    missing = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Cart items must be objects", {"index": index})
        product_id = item.get("product_id")
        product = catalog.get(product_id) if isinstance(product_id, int) and not isinstance(product_id, bool) else None
        if product is None:
            missing.append(product_id)
            continue
        cart.add_or_increment(product, item.get("quantity", 1))

    if missing:
        raise ValidationError("Product not found or inactive", {"product_ids": missing})
    return cart


@checkout_bp.post("/")
@checkout_bp.post("")
def checkout_route():
    """
    Complete a sale.

    Body:
        items: [{product_id, quantity}]
        payments: [{method, amount, reference?}]
        customer_name?, customer_phone?, voucher_code?, idempotency_key?

    Authorization is decided inside the orchestrator (CHECKOUT_ROLES).
    """
    try:
        data = request.get_json(silent=True) or {}

        cart = _build_cart(data.get("items"), _load_catalog())
        raw_payments = data.get("payments") or []
        if not isinstance(raw_payments, list):
            raise ValidationError("payments must be a list")

        checkout_request = CheckoutRequest(
            entries=cart.entries,
            payments=[parse_payment(p, i) for i, p in enumerate(raw_payments)],
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            voucher_code=data.get("voucher_code"),
        )
        if data.get("idempotency_key"):
            checkout_request.idempotency_key = str(data["idempotency_key"])[:64]

        orchestrator = build_orchestrator(current_user=get_current_user)
        result = orchestrator.checkout(checkout_request, settings_service.load_pricing_config())

        return jsonify(result.to_dict()), 200 if result.replayed else 201

    except CheckoutError as e:
        if isinstance(e, PartialCommitFailure):
            current_app.logger.error("Checkout partially committed: %s", e.details)
        return jsonify(e.to_dict()), error_status(e)
    except Exception:
        current_app.logger.exception("Failed to process checkout")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.post("/voucher")
@require_auth
@require_roles("CHECKOUT_ROLES")
def preview_voucher_route():
    """
    Check a voucher against a cart and show the resulting totals.

    Read-only: usage is only counted when a checkout completes.
    """
    try:
        data = request.get_json(silent=True) or {}
        code = data.get("code")
        if not code:
            return jsonify({"error": "code required"}), 400

        cart = _build_cart(data.get("items"), _load_catalog())
        pricing = settings_service.load_pricing_config()
        resolution = resolve_voucher(code, cart.subtotal())
        breakdown = compute_totals(cart.subtotal(), pricing.tax_rate, resolution.discount)

        return jsonify({
            "voucher": resolution.to_dict(),
            "cart": cart.to_dict(),
            "pricing": breakdown.to_dict(),
            "currency": pricing.to_dict(),
        }), 200

    except CheckoutError as e:
        return jsonify(e.to_dict()), error_status(e)
    except Exception:
        current_app.logger.exception("Failed to preview voucher")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.post("/quote")
@require_auth
@require_roles("CHECKOUT_ROLES")
def quote_route():
    """Price a cart without a voucher (running totals for the till)."""
    try:
        data = request.get_json(silent=True) or {}
        cart = _build_cart(data.get("items"), _load_catalog())
        pricing = settings_service.load_pricing_config()
        breakdown = compute_totals(cart.subtotal(), pricing.tax_rate)
        return jsonify({
            "cart": cart.to_dict(),
            "pricing": breakdown.to_dict(),
            "currency": pricing.to_dict(),
        }), 200

    except CheckoutError as e:
        return jsonify(e.to_dict()), error_status(e)
    except Exception:
        current_app.logger.exception("Failed to quote cart")
        return jsonify({"error": "Internal server error"}), 500
