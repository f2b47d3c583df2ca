"""
Cloud Function entry point for invoice tax calculation.
"""

import logging
import os
import json
from decimal import Decimal
from typing import Any, Dict, List, Optional

import compliance
import config
import legal_clauses
import tax_calculator
from exceptions import InvalidLineItem, MisconfiguredRegime, UnsupportedJurisdiction, UnsupportedSubregion
from jurisdiction_resolver import split_jurisdiction_code

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.environ.get('LOG_LEVEL') or config.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Optional request fields that must be strings when present
_STRING_FIELDS = ('sellerCountry', 'buyerCountry', 'sellerVatId', 'buyerVatId', 'displayCurrency')


def _json_default(value: Any):
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'body': json.dumps(body, default=_json_default, ensure_ascii=False)
    }


def _error(status_code: int, message: str, **details) -> Dict[str, Any]:
    return _response(status_code, {'error': message, **details})


def _compose_clauses(requested: List[Dict[str, Any]], buyer_country: str, buyer_vat_id: Optional[str]) -> List[Dict[str, str]]:
    """Render requested legal clauses for the buyer's jurisdiction"""
    clauses = []
    for entry in requested:
        clause_type = entry.get('type')
        variables = dict(entry.get('variables') or {})
        if buyer_vat_id:
            variables.setdefault('buyerVatId', buyer_vat_id)
        clauses.append({
            'type': clause_type,
            'text': legal_clauses.generate_clause(clause_type, buyer_country, variables),
        })
    return clauses


def tax_calculation_handler(request, calculator: Optional[tax_calculator.TaxCalculator] = None):
    """
    Calculate invoice taxes for an HTTP request.

    Expected JSON body:
        items: [{description, amount, quantity?, taxCode?}]
        sellerCountry, buyerCountry: jurisdiction codes (buyer may be 'US-CA')
        sellerVatId?, buyerVatId?: VAT numbers
        displayCurrency?: currency for display amounts
        clauses?: [{type, variables?}] legal clauses to attach
        sellerAnnualRevenue?: seller revenue in the buyer's country, for the GST registration check

    Args:
        request: Flask request object (for HTTP triggers)
        calculator: Calculator to use (defaults to the shared one)

    Returns:
        Response dictionary
    """
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return _error(400, 'Request body must be a JSON object')

    items = payload.get('items')
    seller_country = payload.get('sellerCountry')
    buyer_country = payload.get('buyerCountry')

    if not items or not isinstance(items, list) or not seller_country or not buyer_country:
        return _error(400, 'items, sellerCountry and buyerCountry are required')

    for field in _STRING_FIELDS:
        value = payload.get(field)
        if value is not None and not isinstance(value, str):
            return _error(400, f"{field} must be a string")

    requested_clauses = payload.get('clauses') or []
    if not isinstance(requested_clauses, list) or any(
        not isinstance(entry, dict)
        or entry.get('type') not in legal_clauses.CLAUSE_TYPES
        or not isinstance(entry.get('variables') or {}, dict)
        for entry in requested_clauses
    ):
        return _error(400, 'Invalid clauses', supported=list(legal_clauses.CLAUSE_TYPES))

    annual_revenue = payload.get('sellerAnnualRevenue')
    if annual_revenue is not None and (
        isinstance(annual_revenue, bool) or not isinstance(annual_revenue, (int, float)) or annual_revenue < 0
    ):
        return _error(400, 'sellerAnnualRevenue must be a non-negative number')

    # Reverse charge is only granted to well-formed numbers
    buyer_vat_id = payload.get('buyerVatId')
    if buyer_vat_id:
        if not compliance.is_well_formed_vat_number(buyer_vat_id):
            return _error(400, 'Invalid VAT number format')
        buyer_vat_id = compliance.normalize_vat_number(buyer_vat_id)

    calculator = calculator or tax_calculator.get_default_calculator()

    try:
        calculation = calculator.calculate_taxes(
            items,
            seller_country,
            buyer_country,
            seller_vat_id=payload.get('sellerVatId'),
            buyer_vat_id=buyer_vat_id,
            display_currency=payload.get('displayCurrency'),
        )

        body = calculation.to_dict()
        body['lines'] = calculation.breakdown.to_lines()
        body['requirements'] = compliance.get_business_id_requirements(buyer_country)
        if annual_revenue is not None:
            body['gstRegistrationRequired'] = compliance.requires_gst_registration(
                split_jurisdiction_code(buyer_country)[0], annual_revenue
            )
        if requested_clauses:
            body['legalClauses'] = _compose_clauses(requested_clauses, buyer_country, buyer_vat_id)
    except InvalidLineItem as e:
        logger.info(f"Rejected line items: {e}")
        return _error(400, str(e))
    except UnsupportedSubregion as e:
        logger.info(f"Unsupported subregion: {e}")
        return _error(400, str(e), code=e.code, subregion=e.subregion)
    except UnsupportedJurisdiction as e:
        logger.info(f"Unsupported jurisdiction: {e}")
        return _error(400, str(e), code=e.code)
    except MisconfiguredRegime as e:
        logger.error(f"Tax regime misconfigured: {e}", exc_info=True)
        return _error(500, 'Tax configuration error')
    except Exception as e:
        logger.error(f"Error in tax calculation: {e}", exc_info=True)
        return _error(500, 'Tax calculation failed')

    logger.info(
        f"Calculated taxes for {buyer_country}: taxable={calculation.taxable_amount} "
        f"tax={calculation.tax_amount} total={calculation.total}"
    )
    return _response(200, body)


# For Cloud Functions HTTP trigger
def main(request):
    """Main entry point for Cloud Function"""
    return tax_calculation_handler(request)


# For local testing
if __name__ == '__main__':
    class MockRequest:
        def get_json(self, silent=False):
            return {
                'items': [{'description': 'Consulting', 'amount': 100, 'quantity': 1}],
                'sellerCountry': 'DE',
                'buyerCountry': 'US-CA',
                'clauses': [{'type': 'paymentTerms', 'variables': {'days': 30, 'rate': 1.5}}],
            }

    result = tax_calculation_handler(MockRequest())
    print(json.dumps(result, indent=2))
