"""Billing metrics published to CloudWatch.

Two metric families:
- EventCount, one datapoint per business event (subscription started or
  canceled, unmapped price, customer conflict, checkout session created)
- WebhookDeliveries, one datapoint per handled Stripe delivery, dimensioned
  by event type and outcome (ok / duplicate / ignored)

Publishing never blocks or fails the caller. boto3 is synchronous, so
put_metric_data runs on a small thread pool and errors are only logged.
Nothing is sent unless METRICS_ENABLED is set.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from enum import StrEnum

import boto3
import structlog

from billing_sync.core.config import get_settings

logger = structlog.get_logger(__name__)

_cw_client = None
_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="cw-metrics")


class BusinessEvent(StrEnum):
    SUBSCRIPTION_STARTED = "subscription_started"
    SUBSCRIPTION_CANCELED = "subscription_canceled"
    UNMAPPED_PRICE = "unmapped_price"
    CUSTOMER_CONFLICT = "customer_conflict"
    CHECKOUT_SESSION_CREATED = "checkout_session_created"


def _get_client():
    global _cw_client
    if _cw_client is None:
        _cw_client = boto3.client("cloudwatch", region_name=get_settings().aws_region)
    return _cw_client


def _datapoint(name: str, dimensions: dict[str, str]) -> dict:
    return {
        "MetricName": name,
        "Dimensions": [{"Name": k, "Value": v} for k, v in dimensions.items()],
        "Value": 1.0,
        "Unit": "Count",
        "Timestamp": datetime.now(timezone.utc),
    }


def _put(namespace: str, datapoint: dict) -> None:
    try:
        _get_client().put_metric_data(Namespace=namespace, MetricData=[datapoint])
    except Exception as e:
        logger.warning("metric_emit_failed", error=str(e), metric=datapoint["MetricName"])


def _submit(datapoint: dict) -> None:
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    loop = asyncio.get_running_loop()
    loop.run_in_executor(_executor, _put, settings.metrics_namespace, datapoint)


async def emit_business_event(event_name: str, user_id: int | None = None) -> None:
    dimensions = {"Event": str(event_name)}
    if user_id is not None:
        dimensions["UserId"] = str(user_id)
    _submit(_datapoint("EventCount", dimensions))


async def emit_webhook_delivery(event_type: str, outcome: str) -> None:
    _submit(_datapoint("WebhookDeliveries", {"EventType": event_type, "Outcome": outcome}))
