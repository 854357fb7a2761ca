# storefront/services/payment.py
"""
Payment gateways. The checkout only needs ``capture(amount, metadata)`` to
return a transaction reference; that reference becomes the order id.
"""
import uuid
from flask import current_app
from ..errors import PaymentError, PaymentTimeoutError


class PaymentGateway:
    method = "unknown"

    def capture(self, amount: int, metadata: dict) -> str:
        raise NotImplementedError

    def reference_for(self, metadata: dict):
        """The reference a capture with ``metadata`` would return, when it can be known up front."""
        return None

    def charge(self, amount: int, metadata: dict) -> str:
        """``capture`` with transport failures mapped onto PaymentError."""
        try:
            return self.capture(amount, metadata)
        except TimeoutError:
            raise PaymentTimeoutError("payment gateway timed out")
        except ConnectionError as e:
            raise PaymentError(f"payment gateway unreachable: {e}")


class CashOnDeliveryGateway(PaymentGateway):
    """Nothing is charged up front. A client-supplied idempotency key keeps retries on one reference."""
    method = "cod"

    def capture(self, amount, metadata):
        return self.reference_for(metadata) or f"COD-{uuid.uuid4().hex[:16].upper()}"

    def reference_for(self, metadata):
        key = str((metadata or {}).get("idempotency_key") or "").strip()
        return f"COD-{key}" if key else None


class PrecapturedGateway(PaymentGateway):
    """
    The shopper already paid on the hosted checkout page; the client sends
    the gateway's payment id, which is taken as the capture reference.
    """
    method = "prepaid"

    def capture(self, amount, metadata):
        ref = self.reference_for(metadata)
        if not ref:
            raise PaymentError("payment_reference is required")
        return ref

    def reference_for(self, metadata):
        return ((metadata or {}).get("payment_reference") or "").strip() or None


GATEWAYS = {
    "cod": CashOnDeliveryGateway,
    "precaptured": PrecapturedGateway,
}


def build_gateway(name: str) -> PaymentGateway:
    try:
        return GATEWAYS[name]()
    except KeyError:
        raise ValueError(f"unknown payment gateway '{name}'")


def get_gateway() -> PaymentGateway:
    gw = current_app.extensions.get("payment_gateway")
    if gw is None:
        gw = build_gateway(current_app.config["PAYMENT_GATEWAY"])
        current_app.extensions["payment_gateway"] = gw
    return gw
