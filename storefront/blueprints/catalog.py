"""Catalog blueprint - caller-specific variant prices."""
from flask import Blueprint, jsonify, g

from storefront.database import get_session
from storefront.exceptions import NotFoundError
from storefront.models import ProductVariant
from storefront.services.currency_service import get_rates
from storefront.services.pricing_service import price_variant
from storefront.utils.formatters import quantize_money

catalog_bp = Blueprint('catalog', __name__, url_prefix='/products')


@catalog_bp.route('/<variant_id>/price', methods=['GET'])
def variant_price(variant_id):
    """Price of a variant for the caller's tier, in USD and display currency."""
    variant = get_session().get(ProductVariant, variant_id)
    if variant is None:
        raise NotFoundError('Product not found.')

    rates = get_rates()
    price = price_variant(get_session(), variant, g.role)
    final_price = quantize_money(price.final_price)
    original_price = quantize_money(price.original_price)

    return jsonify({
        'variant_id': variant.id,
        'name': variant.display_name,
        'is_active': variant.is_active,
        'stock': variant.stock,
        'final_price': final_price,
        'original_price': original_price,
        'has_discount': price.has_discount,
        'discount_percentage': price.discount_percentage,
        'final_price_display': rates.format_local(rates.to_settlement(price.final_price)),
        'original_price_display': rates.format_local(rates.to_settlement(price.original_price)),
        'rate': rates.rate,
    })
