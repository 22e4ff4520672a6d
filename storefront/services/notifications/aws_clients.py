"""
AWS SES client wrapper used for order emails.

Sends a rendered email through SES, retrying throttling, transient
service and connection errors with exponential backoff. Calls are
blocking; async callers run them in a worker thread.
"""

import time
from functools import lru_cache
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from storefront.core.config import get_settings
from storefront.core.logging import get_logger

logger = get_logger(__name__)

# SES error codes that will not succeed on retry
NON_RETRYABLE_ERRORS = frozenset(
    {
        "MessageRejected",
        "MailFromDomainNotVerified",
        "ConfigurationSetDoesNotExist",
        "AccountSendingPausedException",
    }
)


class SESClientError(Exception):
    """Raised when an email could not be delivered to SES."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context = context


class SESClient:
    """
    AWS SES client wrapper with retry logic.

    Args:
        client: Pre-built boto3 SES client, mainly for tests
        max_retries: Maximum number of send attempts
        retry_backoff: Initial backoff in seconds, doubled per attempt
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
    ) -> None:
        settings = get_settings()
        self.from_address = settings.ses_from_email
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff

        self._client = client or boto3.client(
            "ses",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
        )

    def send_email(
        self,
        to_addresses: list[str],
        subject: str,
        body_text: str,
        body_html: Optional[str] = None,
    ) -> str:
        """
        Send an email via SES.

        Returns:
            SES message id

        Raises:
            SESClientError: If the message was rejected or all retries failed
        """
        if not to_addresses:
            raise SESClientError("At least one recipient email address is required")

        body: dict[str, Any] = {"Text": {"Data": body_text, "Charset": "UTF-8"}}
        if body_html:
            body["Html"] = {"Data": body_html, "Charset": "UTF-8"}

        params = {
            "Source": self.from_address,
            "Destination": {"ToAddresses": to_addresses},
            "Message": {
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": body,
            },
        }

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = self._client.send_email(**params)
            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                logger.warning(
                    "SES client error",
                    attempt=attempt,
                    error_code=error_code,
                    to_addresses=to_addresses,
                )
                if error_code in NON_RETRYABLE_ERRORS:
                    raise SESClientError(
                        f"SES rejected email: {error_code}",
                        error_code=error_code,
                    ) from e
                last_error = e
            except BotoCoreError as e:
                logger.warning("SES connection error", attempt=attempt, error=str(e))
                last_error = e
            else:
                message_id = response["MessageId"]
                logger.info(
                    "Email sent via SES",
                    message_id=message_id,
                    to_addresses=to_addresses,
                    subject=subject,
                )
                return message_id

            if attempt < self.max_retries:
                time.sleep(self.retry_backoff * (2 ** (attempt - 1)))

        raise SESClientError(
            f"Failed to send email after {self.max_retries} attempts",
            last_error=str(last_error),
        ) from last_error


@lru_cache()
def get_ses_client() -> SESClient:
    """Get the shared SES client."""
    return SESClient()
