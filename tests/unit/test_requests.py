from __future__ import annotations

from dataclasses import dataclass
from datetime import date

import pytest

from fluentdynamo_py import (
    ConditionCheckBuilder,
    ConditionFailedError,
    DeleteItemBuilder,
    DuplicateKeyError,
    GetItemBuilder,
    MissingConditionError,
    PutItemBuilder,
    QueryBuilder,
    ScanBuilder,
    ThrottledError,
    UpdateItemBuilder,
    ValidationError,
)
from fluentdynamo_py.mocks import ANY, FakeDynamoDBClient, client_error


@dataclass(frozen=True)
class Order:
    customer: str
    order_id: str
    total: int


def test_get_item_builds_key_projection_and_names() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "get_item",
        {
            "TableName": "orders",
            "Key": {"pk": {"S": "USER#1"}, "sk": {"N": "7"}},
            "ProjectionExpression": "#n, #t",
            "ExpressionAttributeNames": {"#n": "name", "#t": "total"},
            "ConsistentRead": True,
            "ReturnConsumedCapacity": "TOTAL",
        },
        response={"Item": {"pk": {"S": "USER#1"}}},
    )

    out = (
        GetItemBuilder("orders", client=client)
        .with_key("pk", "USER#1", "sk", 7)
        .with_projection("#n, #t")
        .with_attributes({"#n": "name", "#t": "total"})
        .using_consistent_read()
        .return_consumed_capacity()
        .execute()
    )

    assert out["Item"] == {"pk": {"S": "USER#1"}}
    assert "ExpressionAttributeValues" not in client.calls[0][1]
    client.assert_no_pending()


def test_get_item_requires_table_and_key() -> None:
    with pytest.raises(ValidationError, match="table name"):
        GetItemBuilder().with_key("pk", "a").to_request()
    with pytest.raises(ValidationError, match="requires a key"):
        GetItemBuilder("t").to_request()
    with pytest.raises(ValidationError, match="needs a value"):
        GetItemBuilder("t").with_key("pk", None)


def test_get_item_for_table_and_wire_keys() -> None:
    req = GetItemBuilder().for_table("t").with_key_values({"pk": {"S": "a"}}).to_request()
    assert req == {"TableName": "t", "Key": {"pk": {"S": "a"}}}


def test_query_accumulates_key_conditions_and_filter() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "query",
        {
            "TableName": "orders",
            "IndexName": "gsi1",
            "KeyConditionExpression": "(#pk = :p0) AND (begins_with(#sk, :p1))",
            "FilterExpression": "#status = :p2",
            "ExpressionAttributeNames": {"#pk": "pk", "#sk": "sk", "#status": "status"},
            "ExpressionAttributeValues": {
                ":p0": {"S": "USER#1"},
                ":p1": {"S": "ORDER#"},
                ":p2": {"S": "open"},
            },
            "Limit": 10,
            "ScanIndexForward": False,
            "ExclusiveStartKey": {"pk": {"S": "USER#1"}, "sk": {"S": "ORDER#9"}},
        },
        response={"Items": [], "Count": 0, "ScannedCount": 0},
    )

    (
        QueryBuilder("orders", client=client)
        .using_index("gsi1")
        .with_attributes({"#pk": "pk", "#sk": "sk", "#status": "status"})
        .where("#pk = {0}", "USER#1")
        .where("begins_with(#sk, {0})", "ORDER#")
        .with_filter("#status = {0}", "open")
        .take(10)
        .order_descending()
        .start_at({"pk": {"S": "USER#1"}, "sk": {"S": "ORDER#9"}})
        .execute()
    )
    client.assert_no_pending()


def test_query_mixes_generated_and_explicit_values() -> None:
    req = (
        QueryBuilder("t")
        .where("#pk = :pk AND #sk > {0}", 5)
        .with_attributes({"#pk": "pk", "#sk": "sk"})
        .with_value(":pk", "A")
        .with_value(":maybe", None)
        .to_request()
    )
    assert req["KeyConditionExpression"] == "#pk = :pk AND #sk > :p0"
    assert req["ExpressionAttributeValues"] == {":p0": {"N": "5"}, ":pk": {"S": "A"}}


def test_query_requires_key_condition() -> None:
    with pytest.raises(MissingConditionError, match="KeyConditionExpression"):
        QueryBuilder("t").with_filter("#a = {0}", 1).to_request()


def test_query_count_and_projection_conflict() -> None:
    assert QueryBuilder("t").where("#pk = {0}", 1).count().to_request()["Select"] == "COUNT"
    with pytest.raises(ValidationError, match="count"):
        QueryBuilder("t").where("#pk = {0}", 1).count().with_projection("#a").to_request()


def test_scan_segments_and_filters() -> None:
    req = (
        ScanBuilder("t")
        .with_filter("#a > {0}", 1)
        .with_filter("#b = {0}", True)
        .with_segment(1, 4)
        .using_consistent_read()
        .to_request()
    )
    assert req == {
        "TableName": "t",
        "FilterExpression": "(#a > :p0) AND (#b = :p1)",
        "ExpressionAttributeValues": {":p0": {"N": "1"}, ":p1": {"BOOL": True}},
        "Segment": 1,
        "TotalSegments": 4,
        "ConsistentRead": True,
    }

    with pytest.raises(ValidationError, match="segment"):
        ScanBuilder("t").with_segment(4, 4)
    with pytest.raises(ValidationError, match="limit"):
        ScanBuilder("t").take(0)


def test_put_item_with_condition_and_no_values() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "put_item",
        {
            "TableName": "t",
            "Item": {"pk": {"S": "A"}},
            "ConditionExpression": "attribute_not_exists(#pk)",
            "ExpressionAttributeNames": {"#pk": "pk"},
            "ReturnValues": "ALL_OLD",
        },
    )

    (
        PutItemBuilder("t", client=client)
        .with_item({"pk": {"S": "A"}})
        .with_attribute("#pk", "pk")
        .where("attribute_not_exists(#pk)")
        .return_all_old_values()
        .execute()
    )
    assert "ExpressionAttributeValues" not in client.calls[0][1]


def test_put_item_with_mapper() -> None:
    order = Order(customer="c1", order_id="o1", total=42)
    req = (
        PutItemBuilder("t")
        .with_item(order, lambda o: {"pk": {"S": o.customer}, "sk": {"S": o.order_id}, "total": {"N": str(o.total)}})
        .to_request()
    )
    assert req["Item"] == {"pk": {"S": "c1"}, "sk": {"S": "o1"}, "total": {"N": "42"}}

    with pytest.raises(ValidationError, match="requires an item"):
        PutItemBuilder("t").to_request()


def test_put_item_maps_conditional_check_failure() -> None:
    client = FakeDynamoDBClient()
    client.expect("put_item", error=client_error("ConditionalCheckFailedException", "nope", operation="PutItem"))

    with pytest.raises(ConditionFailedError, match="nope") as exc:
        PutItemBuilder("t", client=client).with_item({"pk": {"S": "A"}}).execute()
    assert exc.value.__cause__ is not None


def test_update_item_merges_set_calls_and_conditions() -> None:
    client = FakeDynamoDBClient()

    def validate(req: dict) -> None:
        assert req["UpdateExpression"] == "SET #name = :p0, #updated = :p1 REMOVE #legacy ADD #version :p2"
        assert req["ConditionExpression"] == "(attribute_exists(#pk)) AND (#version = :p3)"
        assert req["ExpressionAttributeValues"] == {
            ":p0": {"S": "Ada"},
            ":p1": {"S": "2024-01-15"},
            ":p2": {"N": "1"},
            ":p3": {"N": "6"},
        }
        assert req["ReturnValues"] == "ALL_NEW"
        assert req["ReturnValuesOnConditionCheckFailure"] == "ALL_OLD"

    client.expect("update_item", validate, response={"Attributes": {"name": {"S": "Ada"}}})

    out = (
        UpdateItemBuilder("t", client=client)
        .with_key("pk", "USER#1")
        .set("SET #name = {0}", "Ada")
        .set("SET #updated = {0:yyyy-MM-dd} REMOVE #legacy", date(2024, 1, 15))
        .set("ADD #version {0}", 1)
        .where("attribute_exists(#pk)")
        .where("#version = {0}", 6)
        .with_attributes({"#name": "name", "#updated": "updated", "#legacy": "legacy", "#version": "version"})
        .return_values("ALL_NEW")
        .return_values_on_condition_check_failure()
        .execute()
    )
    assert out["Attributes"] == {"name": {"S": "Ada"}}


def test_update_item_requires_update_expression() -> None:
    with pytest.raises(MissingConditionError, match="UpdateExpression"):
        UpdateItemBuilder("t").with_key("pk", "a").to_request()


def test_delete_item_return_value_modes() -> None:
    req = DeleteItemBuilder("t").with_key("pk", "a").return_values("ALL_OLD").to_request()
    assert req["ReturnValues"] == "ALL_OLD"

    with pytest.raises(ValidationError, match="ReturnValues"):
        DeleteItemBuilder("t").return_values("ALL_NEW")
    with pytest.raises(ValidationError, match="ReturnConsumedCapacity"):
        DeleteItemBuilder("t").return_consumed_capacity("SOME")


def test_delete_item_maps_throttling() -> None:
    client = FakeDynamoDBClient()
    client.expect("delete_item", error=client_error("ProvisionedThroughputExceededException"))
    with pytest.raises(ThrottledError):
        DeleteItemBuilder("t", client=client).with_key("pk", "a").execute()


def test_condition_check_requires_condition() -> None:
    builder = ConditionCheckBuilder("t").with_key("pk", "a")
    with pytest.raises(MissingConditionError):
        builder.to_transact_item()

    builder.where("#v > {0}", 1)
    assert builder.to_transact_item() == {
        "ConditionCheck": {
            "TableName": "t",
            "Key": {"pk": {"S": "a"}},
            "ConditionExpression": "#v > :p0",
            "ExpressionAttributeValues": {":p0": {"N": "1"}},
        }
    }
    with pytest.raises(ValidationError, match="transaction"):
        builder.execute()


def test_explicit_value_colliding_with_generated_one() -> None:
    builder = DeleteItemBuilder("t").where("#a = {0}", 1)
    with pytest.raises(DuplicateKeyError):
        builder.with_value(":p0", 2)


def test_execute_without_client() -> None:
    with pytest.raises(ValidationError, match="no DynamoDB client"):
        GetItemBuilder("t").with_key("pk", "a").execute()


def test_request_with_any_matcher() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", {"TableName": "t", "ExpressionAttributeValues": ANY})
    ScanBuilder("t", client=client).with_filter("#a = {0}", "x").execute()
    client.assert_no_pending()


def test_rejected_update_fragment_registers_no_values() -> None:
    builder = UpdateItemBuilder("t").with_key("pk", "a")
    with pytest.raises(ValidationError, match="must start with one of"):
        builder.set("#a = {0}", "x")

    req = builder.set("SET #b = {0}", "y").to_request()
    assert req["ExpressionAttributeValues"] == {":p0": {"S": "y"}}
    assert req["UpdateExpression"] == "SET #b = :p0"
