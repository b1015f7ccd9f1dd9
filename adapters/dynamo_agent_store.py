"""
DynamoDB-backed agent store and user directory adapters.

Agents table key: ``id``; GSI ``user_id-created_at-index`` for listing.
Users table key: ``id`` with a ``name`` attribute.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from domain.models import Agent
from shared_utils.constants import Defaults, LogScope
from shared_utils.error_handler import ExternalServiceError
from shared_utils.logging_utils import get_scoped_logger


logger = get_scoped_logger(LogScope.ADAPTER)

# BatchGetItem accepts at most 100 keys per request
_BATCH_GET_LIMIT = 100


def _dynamo_resource(region: str, endpoint_url: str, dynamodb_resource: Optional[object]):
    resource_kwargs: dict = {"region_name": region}
    if endpoint_url:
        resource_kwargs["endpoint_url"] = endpoint_url
    return dynamodb_resource or boto3.resource("dynamodb", **resource_kwargs)


class DynamoAgentStoreAdapter:
    """Amazon DynamoDB implementation of AgentStorePort."""

    def __init__(
        self,
        table_name: str,
        region: str = Defaults.AWS_REGION,
        endpoint_url: str = "",
        dynamodb_resource: Optional[object] = None,
        user_index: str = "user_id-created_at-index",
    ) -> None:
        self._user_index = user_index
        self._dynamo = _dynamo_resource(region, endpoint_url, dynamodb_resource)
        self._table = self._dynamo.Table(table_name)

    def put(self, agent: Agent) -> None:
        try:
            self._table.put_item(Item=agent.model_dump(mode="json"))
            logger.info("dynamo_put_agent", agent_id=agent.id)
        except ClientError as exc:
            logger.error("dynamo_put_agent_failed", agent_id=agent.id, error=str(exc))
            raise ExternalServiceError(
                "DynamoDB", f"Failed to put agent: {exc}"
            ) from exc

    def get(self, agent_id: str, user_id: Optional[str] = None) -> Optional[Agent]:
        try:
            response = self._table.get_item(Key={"id": agent_id})
        except ClientError as exc:
            logger.error("dynamo_get_agent_failed", agent_id=agent_id, error=str(exc))
            raise ExternalServiceError(
                "DynamoDB", f"Failed to get agent: {exc}"
            ) from exc
        item = response.get("Item")
        if item is None:
            return None
        if user_id is not None and item.get("user_id") != user_id:
            return None
        return Agent.model_validate(item)

    def list(self, user_id: str) -> List[Agent]:
        query_kwargs: Dict[str, Any] = {
            "IndexName": self._user_index,
            "KeyConditionExpression": Key("user_id").eq(user_id),
            "ScanIndexForward": False,
        }
        items: List[Dict[str, Any]] = []
        try:
            while True:
                response = self._table.query(**query_kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if last_key is None:
                    break
                query_kwargs["ExclusiveStartKey"] = last_key
        except ClientError as exc:
            logger.error("dynamo_list_agents_failed", user_id=user_id, error=str(exc))
            raise ExternalServiceError(
                "DynamoDB", f"Failed to list agents: {exc}"
            ) from exc
        return [Agent.model_validate(item) for item in items]

    def delete(self, agent_id: str) -> None:
        try:
            self._table.delete_item(Key={"id": agent_id})
            logger.info("dynamo_delete_agent", agent_id=agent_id)
        except ClientError as exc:
            logger.error("dynamo_delete_agent_failed", agent_id=agent_id, error=str(exc))
            raise ExternalServiceError(
                "DynamoDB", f"Failed to delete agent: {exc}"
            ) from exc


class DynamoUserDirectoryAdapter:
    """Amazon DynamoDB implementation of UserDirectoryPort."""

    def __init__(
        self,
        table_name: str,
        region: str = Defaults.AWS_REGION,
        endpoint_url: str = "",
        dynamodb_resource: Optional[object] = None,
    ) -> None:
        self._table_name = table_name
        self._dynamo = _dynamo_resource(region, endpoint_url, dynamodb_resource)

    def get_display_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        ids = sorted({uid for uid in user_ids if uid})
        names: Dict[str, str] = {}
        for start in range(0, len(ids), _BATCH_GET_LIMIT):
            chunk = ids[start:start + _BATCH_GET_LIMIT]
            request = {
                self._table_name: {
                    "Keys": [{"id": uid} for uid in chunk],
                    "ProjectionExpression": "id, #name",
                    "ExpressionAttributeNames": {"#name": "name"},
                }
            }
            try:
                while request:
                    response = self._dynamo.batch_get_item(RequestItems=request)
                    for item in response.get("Responses", {}).get(self._table_name, []):
                        if item.get("name"):
                            names[item["id"]] = item["name"]
                    request = response.get("UnprocessedKeys") or {}
            except ClientError as exc:
                logger.error("dynamo_user_lookup_failed", error=str(exc))
                raise ExternalServiceError(
                    "DynamoDB", f"Failed to look up users: {exc}"
                ) from exc
        logger.debug("dynamo_user_lookup", requested=len(ids), found=len(names))
        return names
