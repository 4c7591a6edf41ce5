# Overview: Flask API routes for product lookup at the till.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..errors import CheckoutError
from ..services.catalog_service import CatalogIndex, SqlProductStore
from .checkout import error_status


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


@catalog_bp.get("/lookup")
@require_auth
def lookup_route():
    """
    Resolve scanner/typed input.

    Query: q (barcode or part of a name), limit (default 8)
    Returns the best match plus the name matches for the picker.
    """
    try:
        q = (request.args.get("q") or "").strip()
        if not q:
            return jsonify({"error": "q required"}), 400
        limit = request.args.get("limit", default=8, type=int)

        catalog = CatalogIndex(SqlProductStore())
        catalog.refresh(timeout=current_app.config.get("PERSISTENCE_TIMEOUT_SECONDS"))

        match = catalog.lookup(q)
        if match is None:
            return jsonify({"error": "Product not found", "query": q}), 404

        return jsonify({
            "product": match.to_dict(),
            "matches": [p.to_dict() for p in catalog.search(q, limit=limit)],
        }), 200

    except CheckoutError as e:
        return jsonify(e.to_dict()), error_status(e)
    except Exception:
        current_app.logger.exception("Failed to look up product")
        return jsonify({"error": "Internal server error"}), 500
