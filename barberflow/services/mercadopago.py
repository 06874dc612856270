"""
Cliente HTTP do Mercado Pago.

Usa o access token da barbearia (passado pelo chamador). Timeout limitado e
sem retentativas; qualquer falha vira UpstreamException com o detalhe do
processador.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from barberflow.config import MERCADOPAGO_API_URL, MERCADOPAGO_TIMEOUT
from barberflow.core.exceptions import UpstreamException

logger = logging.getLogger(__name__)


class MercadoPagoClient:
    def __init__(
        self,
        access_token: str,
        base_url: str = MERCADOPAGO_API_URL,
        timeout: float = MERCADOPAGO_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            base_url=base_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Mercado Pago %s %s -> %s", method, path, e.response.status_code)
            raise UpstreamException(
                "Falha na comunicação com o Mercado Pago.",
                details={"status": e.response.status_code, "body": e.response.text[:500]},
            ) from e
        except httpx.HTTPError as e:
            logger.error("Mercado Pago %s %s failed: %s", method, path, e)
            raise UpstreamException(
                "Falha na comunicação com o Mercado Pago.",
                details={"error": str(e)},
            ) from e
        return response.json()

    # =========================
    # PAGAMENTO ÚNICO (checkout)
    # =========================

    def create_payment_link(
        self,
        items: list,
        payer: dict,
        back_urls: dict,
        notification_url: str,
        external_reference: str,
    ) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/checkout/preferences",
            json={
                "items": items,
                "payer": payer,
                "back_urls": back_urls,
                "auto_return": "approved",
                "notification_url": notification_url,
                "external_reference": external_reference,
            },
        )

    def get_payment(self, payment_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/v1/payments/{payment_id}")

    # =========================
    # ASSINATURA (preapproval)
    # =========================

    def create_recurring_plan(
        self,
        reason: str,
        amount: float,
        payer_email: str,
        back_url: str,
        external_reference: str,
        notification_url: str,
    ) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/preapproval",
            json={
                "reason": reason,
                "auto_recurring": {
                    "frequency": 1,
                    "frequency_type": "months",
                    "transaction_amount": amount,
                    "currency_id": "BRL",
                },
                "payer_email": payer_email,
                "back_url": back_url,
                "external_reference": external_reference,
                "notification_url": notification_url,
            },
        )

    def get_recurring_plan(self, preapproval_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/preapproval/{preapproval_id}")

    def cancel_recurring_plan(self, preapproval_id: str) -> Dict[str, Any]:
        return self._request("PUT", f"/preapproval/{preapproval_id}", json={"status": "cancelled"})

    def get_authorized_payment(self, authorized_payment_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/authorized_payments/{authorized_payment_id}")


def get_gateway_factory():
    """Dependência FastAPI: fábrica de clientes a partir do token da barbearia."""
    return MercadoPagoClient
