from __future__ import annotations

import json
from typing import Any

from returns.result import Success

from storefront.core.ports.inbound.place_order import (
    PlaceOrderCommand,
    PlaceOrderLine,
    PlaceOrderUseCase,
)


def run_cli(usecase: PlaceOrderUseCase, raw: str) -> int:
    """
    raw: JSON string.
    Example:
      {"user_id": 1, "items": [{"product_id": 1, "quantity": 2}]}
    """
    try:
        payload = json.loads(raw)
        cmd = _parse_command(payload)
    except (ValueError, TypeError, KeyError, AttributeError) as e:
        print(f"invalid_input: {e}")
        return 2

    result = usecase.place_order(cmd)

    if isinstance(result, Success):
        receipt = result.unwrap()
        print(
            "[ok]",
            json.dumps(
                {
                    "order_id": str(receipt.order_id.value),
                    "user_id": receipt.user_id.value,
                    "total_amount": str(receipt.total.amount),
                    "currency": receipt.total.currency,
                    "items": [
                        {
                            "product_id": ln.product_id.value,
                            "quantity": ln.quantity,
                            "price_at_time": str(ln.price_at_time.amount),
                        }
                        for ln in receipt.lines
                    ],
                }
            ),
        )
        return 0

    err = result.failure()
    print("[ng]", type(err).__name__, str(err))
    return 1


def _parse_command(payload: dict[str, Any]) -> PlaceOrderCommand:
    lines = [
        PlaceOrderLine(product_id=int(x["product_id"]), quantity=int(x["quantity"]))
        for x in payload.get("items", [])
    ]
    return PlaceOrderCommand(user_id=int(payload.get("user_id", 0)), lines=tuple(lines))
