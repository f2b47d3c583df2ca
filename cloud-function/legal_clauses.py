"""
Jurisdiction-specific legal clauses for invoice documents.

A clause is looked up by (clause type, jurisdiction code). Missing entries fall
back to the EU text for VAT jurisdictions and the US text otherwise, so every
supported clause type always yields some text.
"""

import logging
import re
from typing import Dict, Mapping, Optional, Union

import jurisdictions
from jurisdictions import Jurisdiction

logger = logging.getLogger(__name__)

PAYMENT_TERMS = 'paymentTerms'
RETENTION_OF_TITLE = 'retentionOfTitle'
REVERSE_CHARGE = 'reverseCharge'
VAT_COMPLIANCE = 'vatCompliance'

LEGAL_CLAUSES: Dict[str, Dict[str, str]] = {
    PAYMENT_TERMS: {
        'US': "Payment due within {days} days of invoice date. Late payments subject to {rate}% monthly interest.",
        'EU': "Payment due within {days} days. Late payments subject to European Directive 2011/7/EU.",
        'UK': "Payment due within {days} days. Interest may apply under the Late Payment of Commercial Debts Act 2013.",
        'AU': "Payment due {days} days from issue. GST included where applicable.",
        'JP': "請求日から{days}日以内にお支払いください。延滞利息は年{rate}%です。",
    },
    RETENTION_OF_TITLE: {
        'US': "Goods remain seller's property until paid in full.",
        'EU': "Retention of title under EU law until full payment received.",
        'DE': "Eigentumsvorbehalt bis zur vollständigen Zahlung.",
        'FR': "Réserve de propriété jusqu'au paiement intégral.",
    },
    REVERSE_CHARGE: {
        'US': "No sales tax has been charged. The buyer is responsible for any applicable use tax.",
        'EU': "Reverse charge: VAT to be accounted for by the recipient under Article 196 of Council Directive 2006/112/EC. Buyer VAT: {buyerVatId}.",
        'UK': "Reverse charge: customer to account for VAT to HMRC. Buyer VAT: {buyerVatId}.",
        'DE': "Steuerschuldnerschaft des Leistungsempfängers (Reverse Charge). USt-IdNr. des Käufers: {buyerVatId}.",
        'FR': "Autoliquidation : TVA due par le preneur, article 283-2 du CGI. TVA acheteur : {buyerVatId}.",
    },
    VAT_COMPLIANCE: {
        'US': "Sales tax calculated at the applicable state rate.",
        'EU': "VAT compliant with EU Directive 2006/112/EC.",
        'UK': "VAT charged in accordance with the Value Added Tax Act 1994.",
        'AU': "Tax invoice. GST charged in accordance with A New Tax System (Goods and Services Tax) Act 1999.",
    },
}

CLAUSE_TYPES = tuple(LEGAL_CLAUSES)

_PLACEHOLDER = re.compile(r'\{(\w+)\}')

# Clause tables use the post-exit UK key
_CODE_ALIASES = {'GB': 'UK'}


def _as_jurisdiction(jurisdiction: Union[Jurisdiction, str]) -> Jurisdiction:
    if isinstance(jurisdiction, Jurisdiction):
        return jurisdiction
    code = str(jurisdiction).upper().split('-', 1)[0]
    code = _CODE_ALIASES.get(code, code)
    found = jurisdictions.get_jurisdiction(code)
    if found is not None:
        return found
    # Unknown codes still get a clause, from the US fallback
    return Jurisdiction(code=code, name=code, tax_type=jurisdictions.SALES_TAX, currency='USD')


def interpolate(template: str, variables: Optional[Mapping[str, object]] = None) -> str:
    """
    Replace {key} placeholders with values from `variables`.

    Placeholders without a matching variable are left as they are.
    """
    variables = variables or {}

    def substitute(match):
        key = match.group(1)
        if key in variables:
            return str(variables[key])
        return match.group(0)

    return _PLACEHOLDER.sub(substitute, template)


def generate_clause(
    clause_type: str,
    jurisdiction: Union[Jurisdiction, str],
    variables: Optional[Mapping[str, object]] = None,
) -> str:
    """
    Get legal clause text for a jurisdiction with variables substituted.

    Args:
        clause_type: One of CLAUSE_TYPES (e.g. 'paymentTerms')
        jurisdiction: Jurisdiction or its code
        variables: Values for {key} placeholders (e.g. {'days': 30, 'rate': 1.5})

    Returns:
        Clause text

    Raises:
        ValueError: If clause_type is not a known clause type
    """
    if clause_type not in LEGAL_CLAUSES:
        raise ValueError(f"Unknown clause type: {clause_type}")

    jurisdiction = _as_jurisdiction(jurisdiction)
    clauses = LEGAL_CLAUSES[clause_type]

    template = clauses.get(jurisdiction.code)
    if template is None:
        fallback = 'EU' if jurisdiction.tax_type == jurisdictions.VAT else 'US'
        logger.debug(f"No {clause_type} clause for {jurisdiction.code}, using {fallback}")
        template = clauses[fallback]

    return interpolate(template, variables)
