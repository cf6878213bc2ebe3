from __future__ import annotations

import os
import uuid
from datetime import UTC, datetime

import structlog

from fluentdynamo_py import DynamoDbTable, OperationContext, get_dynamodb_client

logger = structlog.get_logger()


def _log_operation(ctx: OperationContext) -> None:
    logger.info("dynamodb_operation", operation=ctx.operation, ok=ctx.ok, seconds=round(ctx.seconds, 4))


def main() -> None:
    os.environ.setdefault("DYNAMODB_ENDPOINT", "http://localhost:8000")
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "dummy")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "dummy")

    client = get_dynamodb_client(region=os.environ.get("AWS_REGION", "us-east-1"))
    table_name = f"fluentdynamo_py_example_{uuid.uuid4().hex[:12]}"

    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)

    try:
        table = DynamoDbTable(table_name, client=client, on_operation=_log_operation)

        for sk, value in (("001", 1), ("010", 10), ("100", 100)):
            table.put().with_item({"pk": {"S": "A"}, "sk": {"S": sk}, "value": {"N": str(value)}}).execute()

        table.update().with_key("pk", "A", "sk", "010").set(
            "SET #touched = {0:yyyy-MM-dd} ADD #value {1}", datetime.now(tz=UTC), 5
        ).with_attributes({"#touched": "touched", "#value": "value"}).execute()

        print("get:", table.get().with_key("pk", "A", "sk", "010").execute().get("Item"))

        page = table.query().where("pk = {0} AND begins_with(sk, {1})", "A", "0").execute()
        print("query begins_with('0'):", page.get("Items"))
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
