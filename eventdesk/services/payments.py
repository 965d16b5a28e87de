"""Payment gateway client: bKash tokenized checkout."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Protocol

import requests

from eventdesk.errors import UpstreamError

logger = logging.getLogger(__name__)

GATEWAY_KEY = 'eventdesk.payment_gateway'

# Refresh the grant token this many seconds before the gateway expires it
TOKEN_EXPIRY_MARGIN = 60
COMPLETED_STATUS = 'Completed'
CHECKOUT_MODE = '0011'


class PaymentGatewayError(UpstreamError):
    """The gateway could not be reached or answered with an error."""


@dataclass(frozen=True)
class PaymentSession:
    redirect_url: str
    payment_id: str


@dataclass(frozen=True)
class PaymentExecution:
    completed: bool
    transaction_id: str | None = None
    invoice_ref: str | None = None
    amount: str | None = None
    status: str | None = None
    error_code: str | None = None
    error_detail: str | None = None


class PaymentGateway(Protocol):
    def create_session(
        self,
        amount: float,
        currency: str,
        invoice_ref: str,
        callback_url: str,
        payer_ref: str | None = None,
    ) -> PaymentSession: ...

    def execute_payment(self, payment_id: str) -> PaymentExecution: ...


def format_amount(amount: float) -> str:
    """Whole amounts without decimals, anything else to two places."""
    value = float(amount)
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}"


class BkashGateway:
    """Thin client for the grant/create/execute calls of bKash checkout."""

    def __init__(
        self,
        username: str | None,
        password: str | None,
        app_key: str | None,
        app_secret: str | None,
        grant_token_url: str | None,
        create_payment_url: str | None,
        execute_payment_url: str | None,
        timeout: float = 30,
        session: requests.Session | None = None,
    ):
        self.username = username
        self.password = password
        self.app_key = app_key
        self.app_secret = app_secret
        self.grant_token_url = grant_token_url
        self.create_payment_url = create_payment_url
        self.execute_payment_url = execute_payment_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config) -> "BkashGateway":
        return cls(
            username=config.get('BKASH_USERNAME'),
            password=config.get('BKASH_PASSWORD'),
            app_key=config.get('BKASH_APP_KEY'),
            app_secret=config.get('BKASH_APP_SECRET'),
            grant_token_url=config.get('BKASH_GRANT_TOKEN_URL'),
            create_payment_url=config.get('BKASH_CREATE_PAYMENT_URL'),
            execute_payment_url=config.get('BKASH_EXECUTE_PAYMENT_URL'),
            timeout=config.get('PAYMENT_TIMEOUT', 30),
        )

    def _post(self, url: str, payload: dict, headers: dict) -> tuple[requests.Response, dict]:
        try:
            response = self.session.post(
                url,
                json=payload,
                headers={'Content-Type': 'application/json', 'Accept': 'application/json', **headers},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise PaymentGatewayError(f"bKash request to {url} failed: {exc}") from exc
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        return response, data

    def grant_token(self) -> str:
        with self._lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token

            if not all([self.username, self.password, self.app_key, self.app_secret, self.grant_token_url]):
                raise PaymentGatewayError("bKash credentials not configured")

            response, data = self._post(
                self.grant_token_url,
                {'app_key': self.app_key, 'app_secret': self.app_secret},
                {'username': self.username, 'password': self.password},
            )
            token = data.get('id_token')
            if not response.ok or not token:
                detail = data.get('errorMessage') or data.get('statusMessage') or 'Failed to get bKash token'
                raise PaymentGatewayError(detail)

            expires_in = int(data.get('expires_in') or 3600)
            self._token = token
            self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
            return token

    def _auth_headers(self) -> dict:
        return {'Authorization': self.grant_token(), 'X-App-Key': self.app_key}

    def create_session(
        self,
        amount: float,
        currency: str,
        invoice_ref: str,
        callback_url: str,
        payer_ref: str | None = None,
    ) -> PaymentSession:
        if not self.create_payment_url:
            raise PaymentGatewayError("bKash create payment URL not configured")

        response, data = self._post(
            self.create_payment_url,
            {
                'mode': CHECKOUT_MODE,
                'payerReference': payer_ref or invoice_ref,
                'callbackURL': callback_url,
                'amount': format_amount(amount),
                'currency': currency,
                'intent': 'sale',
                'merchantInvoiceNumber': invoice_ref,
            },
            self._auth_headers(),
        )
        payment_id = data.get('paymentID') or data.get('paymentId')
        redirect_url = data.get('bkashURL')
        if not response.ok or not redirect_url or not payment_id:
            detail = data.get('errorMessage') or data.get('statusMessage') or 'Failed to create bKash payment'
            raise PaymentGatewayError(detail)

        logger.info("Created bKash payment %s for invoice %s", payment_id, invoice_ref)
        return PaymentSession(redirect_url=redirect_url, payment_id=payment_id)

    def execute_payment(self, payment_id: str) -> PaymentExecution:
        if not self.execute_payment_url:
            raise PaymentGatewayError("bKash execute payment URL not configured")

        response, data = self._post(
            self.execute_payment_url,
            {'paymentID': payment_id},
            self._auth_headers(),
        )
        status = data.get('transactionStatus')
        execution = PaymentExecution(
            completed=status == COMPLETED_STATUS,
            transaction_id=data.get('trxID'),
            invoice_ref=data.get('merchantInvoiceNumber'),
            amount=data.get('amount'),
            status=status,
            error_code=data.get('errorCode') or data.get('statusCode'),
            error_detail=data.get('errorMessage') or data.get('statusMessage'),
        )
        if not execution.completed:
            logger.error(
                "bKash execute failed for %s: http=%s status=%s code=%s message=%s",
                payment_id,
                response.status_code,
                status,
                execution.error_code,
                execution.error_detail,
            )
        return execution


__all__ = [
    'GATEWAY_KEY',
    'PaymentGateway',
    'PaymentGatewayError',
    'PaymentSession',
    'PaymentExecution',
    'BkashGateway',
    'format_amount',
]
