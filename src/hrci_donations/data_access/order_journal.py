import logging
import threading
from datetime import datetime, timezone
from typing import Protocol

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from hrci_donations.models.donation import PaymentOrder

logger = logging.getLogger(__name__)

ORDER_PREFIX = "ORDER#"
PENDING_SK = "PENDING"


class OrderJournal(Protocol):
    """
    Durable record of orders whose checkout has been opened but not yet
    resolved to a receipt. Written before the payment sheet opens so a crash
    inside the sheet can still be reconciled by provider order id.
    """

    def record(self, order: PaymentOrder) -> None:
        ...

    def resolve(self, order_id: str) -> None:
        ...

    def pending(self) -> list[dict]:
        ...


def _entry(order: PaymentOrder) -> dict:
    return {
        "order_id": order.order_id,
        "provider_order_id": order.provider_order_id,
        "amount": str(order.amount),
        "currency": order.currency,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }


class InMemoryOrderJournal:
    def __init__(self):
        self._entries: dict[str, dict] = {}
        self._lock = threading.Lock()

    def record(self, order: PaymentOrder) -> None:
        with self._lock:
            self._entries.setdefault(order.order_id, _entry(order))

    def resolve(self, order_id: str) -> None:
        with self._lock:
            self._entries.pop(order_id, None)

    def pending(self) -> list[dict]:
        with self._lock:
            return [dict(e) for e in self._entries.values()]


class DynamoOrderJournal:
    def __init__(self, table):
        self.table = table

    def record(self, order: PaymentOrder) -> None:
        item = {
            "PK": f"{ORDER_PREFIX}{order.order_id}",
            "SK": PENDING_SK,
            **_entry(order),
        }

        try:
            self.table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(PK)"
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                logger.info(f"Order {order.order_id} already journaled")
            else:
                logger.error(f"Error journaling order {order.order_id}: {e}")
                raise

    def resolve(self, order_id: str) -> None:
        try:
            self.table.delete_item(
                Key={
                    "PK": f"{ORDER_PREFIX}{order_id}",
                    "SK": PENDING_SK
                }
            )
        except ClientError as e:
            logger.error(f"Error resolving journaled order {order_id}: {e}")
            raise

    def pending(self) -> list[dict]:
        items: list[dict] = []
        kwargs = {"FilterExpression": Attr("SK").eq(PENDING_SK)}
        try:
            while True:
                response = self.table.scan(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"Error listing journaled orders: {e}")
            raise
        return items
