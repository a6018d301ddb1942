"""
marketplace/integrations/payment.py - Payment gateway placeholder.

Checkout does not charge anything yet: the order is created as Pending and the
payment block in the response only echoes the requested method.
"""
from typing import Dict, Optional

DEFAULT_PAYMENT_METHOD = "pending"


def stub_payment(method: Optional[str] = None) -> Dict[str, str]:
    """Returns the payment block for a freshly created order (never charges)."""
    return {
        "method": (method or "").strip() or DEFAULT_PAYMENT_METHOD,
        "status": "pending",
    }
