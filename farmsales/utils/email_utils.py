"""
Email utility functions.
Handles email templates and SMTP delivery of customer receipts.
"""

import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List, Dict, Optional, Any
from dataclasses import dataclass
import logging
from jinja2 import Environment, BaseLoader, select_autoescape
from pydantic import BaseModel, EmailStr

from ..config.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class EmailConfig:
    """Email configuration settings."""
    smtp_server: str
    smtp_port: int
    username: Optional[str]
    password: Optional[str]
    sender: str
    use_tls: bool = True
    timeout: int = 30

    @classmethod
    def from_settings(cls) -> "EmailConfig":
        return cls(
            smtp_server=settings.SMTP_SERVER,
            smtp_port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            sender=settings.EMAIL_FROM,
            use_tls=settings.SMTP_USE_TLS,
        )


class EmailTemplate(BaseModel):
    """Email template model."""
    name: str
    subject: str
    html_content: str
    text_content: Optional[str] = None


class EmailMessage(BaseModel):
    """Email message model."""
    recipients: List[EmailStr]
    subject: str
    html_content: Optional[str] = None
    text_content: Optional[str] = None


RECEIPT_SUBJECT = "Payment Receipt {{ receipt.receipt_no or receipt.display_id }}"

RECEIPT_TEXT = """Order {{ receipt.display_id }}
Receipt: {{ receipt.receipt_no or '-' }}
Date: {{ date(receipt.payment_date, "display") }}
Amount paid: {{ money(receipt.transaction_amount) }}
Previously collected: {{ money(receipt.previously_collected) }}
Remaining balance: {{ money(receipt.remaining_balance) }}
Payment status: {{ receipt.payment_status_text }}
"""

RECEIPT_HTML = """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333;">
  <h2>Payment Receipt</h2>
  <p>Order <strong>{{ receipt.display_id }}</strong>{% if receipt.receipt_no %}, receipt <strong>{{ receipt.receipt_no }}</strong>{% endif %}<br>
     {{ date(receipt.payment_date, "display") }}</p>
  <table cellpadding="6" style="border-collapse: collapse;">
    <tr><th align="left">Product</th><th align="right">Qty</th><th align="right">Price</th><th align="right">Discount</th><th align="right">Total</th></tr>
    {% for line in receipt.lines %}
    <tr>
      <td>{{ line.product_name }}</td>
      <td align="right">{{ line.quantity }} {{ line.unit }}</td>
      <td align="right">{{ money(line.price) }}</td>
      <td align="right">{{ line.discount or 0 }}%</td>
      <td align="right">{{ money(line.line_total) }}</td>
    </tr>
    {% endfor %}
  </table>
  <p>Subtotal: {{ money(receipt.subtotal) }}<br>
     VAT: {{ money(receipt.vat_amount) }}<br>
     <strong>Total: {{ money(receipt.total_amount) }}</strong></p>
  <p>Amount paid: {{ money(receipt.transaction_amount) }}<br>
     Previously collected: {{ money(receipt.previously_collected) }}<br>
     Remaining balance: {{ money(receipt.remaining_balance) }}<br>
     Payment status: {{ receipt.payment_status_text }}</p>
</body>
</html>
"""


class EmailService:
    """SMTP email sender with jinja2-rendered templates."""

    def __init__(self, config: EmailConfig = None):
        self.config = config or EmailConfig.from_settings()
        self.template_env = Environment(loader=BaseLoader(), autoescape=select_autoescape(default=True))
        self.templates = self._load_default_templates()

    def _load_default_templates(self) -> Dict[str, EmailTemplate]:
        return {
            "payment_receipt": EmailTemplate(
                name="payment_receipt",
                subject=RECEIPT_SUBJECT,
                html_content=RECEIPT_HTML,
                text_content=RECEIPT_TEXT,
            ),
        }

    def get_template(self, name: str) -> Optional[EmailTemplate]:
        """Get email template by name."""
        return self.templates.get(name)

    def render_template(self, template_name: str, data: Dict[str, Any]) -> Dict[str, str]:
        """Render email template with data."""
        template = self.get_template(template_name)
        if not template:
            raise ValueError(f"Template '{template_name}' not found")

        def render(source: Optional[str]) -> Optional[str]:
            return self.template_env.from_string(source).render(**data) if source else None

        return {
            "subject": render(template.subject),
            "html_content": render(template.html_content),
            "text_content": render(template.text_content),
        }

    def send_email(self, message: EmailMessage) -> None:
        """Send single email; SMTP and connection errors propagate to the caller."""
        msg = MIMEMultipart('alternative')
        msg['From'] = self.config.sender
        msg['To'] = ", ".join(message.recipients)
        msg['Subject'] = message.subject

        if message.text_content:
            msg.attach(MIMEText(message.text_content, 'plain'))
        if message.html_content:
            msg.attach(MIMEText(message.html_content, 'html'))

        context = ssl.create_default_context()
        with smtplib.SMTP(self.config.smtp_server, self.config.smtp_port, timeout=self.config.timeout) as server:
            if self.config.use_tls:
                server.starttls(context=context)
            if self.config.username:
                server.login(self.config.username, self.config.password or "")
            server.sendmail(self.config.sender, list(message.recipients), msg.as_string())

        logger.info(f"Email sent successfully to {len(message.recipients)} recipients")
