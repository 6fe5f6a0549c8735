"""Unit tests for IAM policy documents."""

import json

from components.iam import (
    bucket_policy_document,
    compute_hex_hash,
    lambda_assume_role_policy,
    logging_policy_document,
    queue_policy_document,
    table_policy_document,
)


def statement(document):
    return json.loads(document)["Statement"][0]


def test_assume_role_trusts_lambda():
    """Test that only the Lambda service may assume function roles."""
    assert statement(lambda_assume_role_policy())["Principal"] == {
        "Service": "lambda.amazonaws.com"
    }


def test_bucket_policy_scoped_to_objects():
    """Test that bucket access is limited to object reads and writes."""
    doc = statement(bucket_policy_document("arn:aws:s3:::site-bucket"))
    assert doc["Action"] == ["s3:PutObject", "s3:GetObject"]
    assert doc["Resource"] == ["arn:aws:s3:::site-bucket/*"]


def test_table_policy_covers_indexes():
    """Test that the table policy also grants access to its GSIs."""
    arn = "arn:aws:dynamodb:us-east-1:123456789012:table/RevalidationTable"
    doc = statement(table_policy_document(arn))
    assert doc["Resource"] == [arn, f"{arn}/index/*"]
    assert "dynamodb:Query" in doc["Action"]


def test_queue_policy_allows_send():
    """Test that server functions can enqueue revalidation messages."""
    arn = "arn:aws:sqs:us-east-1:123456789012:revalidationQueue.fifo"
    doc = statement(queue_policy_document(arn))
    assert "sqs:SendMessage" in doc["Action"]
    assert doc["Resource"] == arn


def test_logging_policy():
    """Test that functions can write CloudWatch logs."""
    assert "logs:PutLogEvents" in statement(logging_policy_document())["Action"]


def test_compute_hex_hash_is_stable():
    """Test that the same key always gives the same name suffix."""
    assert compute_hex_hash("_assets/favicon.ico") == compute_hex_hash("_assets/favicon.ico")
    assert len(compute_hex_hash("x")) == 64
