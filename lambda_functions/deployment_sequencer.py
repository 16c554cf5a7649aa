import json
import logging
import os
from typing import Any, Dict

import boto3
import requests

logger = logging.getLogger()
logger.setLevel(logging.INFO)

GITHUB_API_URL = "https://api.github.com"
GITHUB_ACCEPT_HEADER = "application/vnd.github+json"
PENDING_RUN_STATUSES = ("queued", "in_progress")
DEFAULT_EVENT_TYPE = "deploy"
RETRY_DELAY_SECONDS = 60
REQUEST_TIMEOUT_SECONDS = 10


class DeploymentInProgress(Exception):
    """A workflow run is still active for the repository; the message must be retried"""


def github_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}", "Accept": GITHUB_ACCEPT_HEADER}


def has_pending_runs(repository: str, token: str) -> bool:
    """True if any GitHub Actions run of the repository is queued or running"""
    for status in PENDING_RUN_STATUSES:
        response = requests.get(
            f"{GITHUB_API_URL}/repos/{repository}/actions/runs",
            headers=github_headers(token),
            params={"status": status, "per_page": 1},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        if response.json().get("total_count", 0) > 0:
            return True
    return False


def dispatch(repository: str, event_type: str, client_payload: Dict[str, Any], token: str) -> None:
    response = requests.post(
        f"{GITHUB_API_URL}/repos/{repository}/dispatches",
        headers=github_headers(token),
        json={"event_type": event_type, "client_payload": client_payload},
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    response.raise_for_status()


def requeue(sqs, queue_url: str, body: str, repository: str) -> None:
    """Send the message back to the queue of a standard (non FIFO) sequencer"""
    if queue_url.endswith(".fifo"):
        raise ValueError("FIFO messages are retried by SQS, not re-enqueued")
    sqs.send_message(QueueUrl=queue_url, MessageBody=body, DelaySeconds=RETRY_DELAY_SECONDS)
    logger.info("Deployment of %s postponed by %s seconds", repository, RETRY_DELAY_SECONDS)


def handler(event: Dict[str, Any], context) -> Dict[str, Any]:
    """
    Forward deployment requests to GitHub as repository_dispatch events, one
    at a time per repository.

    Each SQS record holds {"repository": "<owner>/<name>", "event_type": ...,
    "client_payload": {...}}. The function is wired with a batch size of 1.
    """
    token = os.environ[os.environ.get("GITHUB_TOKEN_KEY", "GITHUB_TOKEN")]
    queue_url = os.environ[os.environ.get("QUEUE_URL_KEY", "QUEUE_URL")]
    region = os.environ.get(os.environ.get("REGION_KEY", "REGION"))

    dispatched = 0
    for record in event.get("Records", []):
        body = record["body"]
        message = json.loads(body)
        repository = message["repository"]

        if has_pending_runs(repository, token):
            if queue_url.endswith(".fifo"):
                # Failing keeps the message, and everything behind it, in the queue
                raise DeploymentInProgress(f"A workflow run is in progress for {repository}")
            requeue(boto3.client("sqs", region_name=region), queue_url, body, repository)
            continue

        dispatch(
            repository,
            message.get("event_type", DEFAULT_EVENT_TYPE),
            message.get("client_payload", {}),
            token,
        )
        dispatched += 1
        logger.info("Dispatched deployment of %s (message %s)", repository, record.get("messageId"))

    return {"statusCode": 200, "body": {"dispatched": dispatched}}
