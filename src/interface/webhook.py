"""WhatsApp webhook endpoints."""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from fastapi.responses import Response

from src.core.config import constants
from src.interface import webhook_security, whatsapp_parser
from src.services import message_pipeline


router = APIRouter(prefix="/webhook", tags=["webhook"])
logger = logging.getLogger(__name__)


def _twiml_ack() -> Response:
    return Response(content=constants.TWIML_EMPTY_RESPONSE, media_type="text/xml", status_code=constants.HTTP_OK)


@router.post("/whatsapp")
async def receive_webhook(request: Request, background_tasks: BackgroundTasks) -> Response:
    """Receive an inbound WhatsApp message from Twilio.

    This endpoint:
    1. Validates the form (From and Body are required) and, if enabled, the signature
    2. Appends the message to the sender's buffer
    3. Returns an empty TwiML response immediately
    4. Schedules the debounce settle check as a background task

    Args:
        request: FastAPI request object containing form data
        background_tasks: FastAPI BackgroundTasks for post-response processing

    Returns:
        Empty TwiML response

    Raises:
        HTTPException: 400 for a malformed message, 403 for a bad signature
    """
    form = await request.form()
    fields = {key: value for key, value in form.items() if isinstance(value, str)}

    message = whatsapp_parser.parse_twilio_webhook(fields)
    if message is None:
        logger.warning("Rejected webhook without From or Body", extra={"fields": sorted(fields)})
        raise HTTPException(status_code=constants.HTTP_BAD_REQUEST, detail="Missing From or Body")

    security_result = webhook_security.validate_twilio_signature(
        url=str(request.url),
        params=fields,
        received_signature=request.headers.get("X-Twilio-Signature"),
    )
    if not security_result.is_valid:
        raise HTTPException(
            status_code=security_result.http_status_code or constants.HTTP_FORBIDDEN,
            detail=security_result.error_message,
        )

    try:
        await message_pipeline.receive_message(
            sender_phone=message.from_phone,
            text=message.text,
            profile_name=message.profile_name,
        )
    except Exception as e:
        # Always 200: Twilio redelivers on any other status
        logger.error(
            "Failed to buffer message",
            extra={"sender_id": message.from_phone, "message_sid": message.message_sid, "error": str(e)},
        )
        return _twiml_ack()

    logger.info("Buffered inbound message", extra={"sender_id": message.from_phone, "message_sid": message.message_sid})
    background_tasks.add_task(message_pipeline.wait_and_settle, sender_id=message.from_phone)
    return _twiml_ack()
