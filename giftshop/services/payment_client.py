# giftshop/services/payment_client.py
import hashlib
import hmac

import requests
from requests import RequestException

from giftshop.domain.errors import PaymentGatewayError
from giftshop.utils.logging import get_logger
from giftshop.utils.retry import http_retry
from giftshop.utils.settings import PAYMENT_GATEWAY_URL, PAYMENT_RETURN_URL, PAYMENT_SECRET_KEY

logger = get_logger(__name__)


def sign(secret: str, order_id, result_code, trans_id) -> str:
    payload = f"{order_id}|{result_code}|{trans_id}".encode()
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


class PaymentClient:
    """
    Waski interfejs do bramki platnosci: inicjacja zwraca URL przekierowania,
    wynik przychodzi pozniej callbackiem (/payments/callback).
    """

    def __init__(
        self,
        base_url: str | None = None,
        return_url: str | None = None,
        secret: str | None = None,
        timeout: int = 5,
    ):
        self.base_url = (base_url or PAYMENT_GATEWAY_URL).rstrip("/")
        self.return_url = return_url or PAYMENT_RETURN_URL
        self.secret = secret or PAYMENT_SECRET_KEY
        self.timeout = timeout

    @http_retry()
    def _post(self, url: str, payload: dict) -> dict:
        logger.info(f"PaymentClient POST {url}")
        resp = requests.post(url, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def initiate_payment(self, order_id: int, amount, payment_method: str) -> str:
        payload = {
            "orderId": str(order_id),
            "amount": str(amount),
            "method": payment_method,
            "returnUrl": self.return_url,
        }
        try:
            data = self._post(f"{self.base_url}/payments", payload)
        except RequestException as e:
            logger.error(f"Bramka platnosci niedostepna dla zamowienia {order_id}: {e}")
            raise PaymentGatewayError(f"Bramka platnosci niedostepna: {e}") from e

        url = data.get("payUrl") or data.get("paymentUrl")
        if not url:
            raise PaymentGatewayError("Bramka platnosci nie zwrocila adresu przekierowania")
        return url

    def verify_signature(self, order_id, result_code, trans_id, signature: str) -> bool:
        expected = sign(self.secret, order_id, result_code, trans_id)
        return hmac.compare_digest(expected, signature or "")
