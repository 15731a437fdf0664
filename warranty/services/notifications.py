"""
Best-effort email side effects of submission creation.

Runs as a background task after the response has been sent, so it works on
a detached snapshot of the submission rather than the ORM row.
"""

import logging
from typing import List

from warranty.core.email import email_service, EmailDeliveryError
from warranty.schemas.submission import SubmissionOut

logger = logging.getLogger(__name__)


def notify_new_submission(submission: SubmissionOut, file_names: List[str]) -> None:
    """Send the staff alert and the customer confirmation; failures are only logged"""
    try:
        email_service.send_staff_notification(submission, file_names)
    except EmailDeliveryError as e:
        logger.error(f"Staff notification for submission {submission.id} failed: {e}")
    except Exception as e:
        logger.exception(f"Unexpected error in staff notification for submission {submission.id}: {e}")

    try:
        email_service.send_confirmation_email(submission)
    except EmailDeliveryError as e:
        logger.error(f"Confirmation email for submission {submission.id} failed: {e}")
    except Exception as e:
        logger.exception(f"Unexpected error in confirmation email for submission {submission.id}: {e}")
