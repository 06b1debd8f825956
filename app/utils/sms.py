import logging
from typing import Optional

import telnyx

from config import settings

_LOGGER = logging.getLogger(__name__)


def send_sms(
    to: str,
    body: str,
    *,
    api_key: Optional[str] = None,
    from_number: Optional[str] = None,
) -> None:
    api_key = api_key or settings.TELNYX_API_KEY
    from_number = from_number or settings.TELNYX_FROM_NUMBER
    if not api_key or not from_number:
        _LOGGER.info("[SMS] DEV mode: would send to %s: %s", to, body)
        return
    telnyx.api_key = api_key
    telnyx.Message.create(from_=from_number, to=to, text=body)
