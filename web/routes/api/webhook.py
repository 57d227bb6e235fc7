"""Conversion postback endpoint feeding the revenue ledger."""
from fastapi import APIRouter, Depends, Request

from core.ledger import RevenueLedger, parse_postback
from web.schemas import PostbackRequest, PostbackResponse
from web.config import POSTBACK_RATE_LIMIT
from ._deps import limiter, get_ledger, get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/webhook/postback", response_model=PostbackResponse)
@limiter.limit(POSTBACK_RATE_LIMIT)
async def receive_postback(
    request: Request,
    body: PostbackRequest,
    ledger: RevenueLedger = Depends(get_ledger),
):
    """
    Record one conversion: +payout income and +1 firstdep for the buyer today.

    Deliveries are not deduplicated; a repeated postback is counted again.
    """
    event = parse_postback(body.campaign_name, body.payout)
    record = await ledger.record_postback(event)

    return {
        "status": "received",
        "buyer": event.buyer_name,
        "amount": event.amount,
        "date": record.date.isoformat(),
        "dayIncome": record.income,
        "dayFirstdeps": record.firstdeps,
    }
