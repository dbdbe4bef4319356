"""
Receipt notification collaborator.

Sending is best effort: a failure is logged and reported back, never raised
into the payment that triggered it.
"""
from dataclasses import dataclass
from typing import Optional

from ..config.logging import get_logger
from ..config.settings import get_settings
from ..schemas.payment import PaymentReceipt
from ..utils.email_utils import EmailService, EmailMessage
from ..utils.date_utils import format_date
from ..utils.money_utils import format_money

logger = get_logger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    error: Optional[str] = None


class NotificationService:
    def __init__(self, email_service: EmailService = None, enabled: bool = None):
        self.enabled = settings.EMAIL_ENABLED if enabled is None else enabled
        self.email_service = email_service

    def _get_email_service(self) -> EmailService:
        if self.email_service is None:
            self.email_service = EmailService()
        return self.email_service

    def send_receipt(self, email: str, receipt: PaymentReceipt) -> NotificationResult:
        """Email the bill for one payment event to the customer."""
        if not self.enabled:
            return NotificationResult(success=False, error="Email delivery is disabled")

        try:
            service = self._get_email_service()
            rendered = service.render_template(
                "payment_receipt", {"receipt": receipt, "money": format_money, "date": format_date}
            )
            service.send_email(EmailMessage(
                recipients=[email],
                subject=rendered["subject"],
                html_content=rendered["html_content"],
                text_content=rendered["text_content"],
            ))
        except Exception as e:
            logger.error(
                f"Failed to send receipt {receipt.receipt_no} to {email}: {e}",
                extra={"receipt_no": receipt.receipt_no, "order_id": receipt.order_id}
            )
            return NotificationResult(success=False, error=str(e))

        logger.info(f"Receipt {receipt.receipt_no} emailed to {email}", extra={"receipt_no": receipt.receipt_no})
        return NotificationResult(success=True)
