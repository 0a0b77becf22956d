"""
Account Code Delivery
=====================
Celery task that hands reset and verification codes to the outside world.
Delivery is simulated: the mock backend has no mail provider, so the task
only records that a code went out.
"""
import logging

from kombu.exceptions import OperationalError

from tvbackend.celery_app import celery_app

logger = logging.getLogger("tvbackend.notifications")

PURPOSES = ("password_reset", "email_verification")


@celery_app.task(name="tvbackend.deliver_account_code", ignore_result=True)
def deliver_account_code(username: str, code: str, purpose: str) -> dict:
    """
    Deliver a one-time code to the account holder.

    Args:
        username: Account identity (doubles as the email address)
        code: The raw code; never logged
        purpose: One of ``PURPOSES``

    Returns:
        dict with delivery status
    """
    if purpose not in PURPOSES:
        raise ValueError(f"Unknown code purpose: {purpose}")
    logger.info("account_code_delivered username=%s purpose=%s length=%s (simulated)", username, purpose, len(code))
    return {"status": "sent", "username": username, "purpose": purpose}


def dispatch_account_code(username: str, code: str, purpose: str) -> bool:
    """Queue delivery of ``code``. Returns False when the broker is unreachable."""
    try:
        deliver_account_code.delay(username, code, purpose)
    except OperationalError as exc:
        logger.error("account_code_dispatch_failed username=%s purpose=%s error=%s", username, purpose, exc)
        return False
    return True
