"""
DynamoDB-backed meeting store adapter.

Implements MeetingStorePort using boto3 for the Meetings table. Every status
change is a single conditional ``update_item`` so concurrent writers (user
requests, webhook deliveries, the processing worker) cannot overwrite each
other's transitions.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError
from pydantic import BaseModel

from domain.lifecycle import ensure_edges, ensure_plain_changes
from domain.models import Meeting, MeetingStatus, utc_now
from shared_utils.constants import Defaults, LogScope
from shared_utils.error_handler import ExternalServiceError
from shared_utils.logging_utils import get_scoped_logger


logger = get_scoped_logger(LogScope.ADAPTER)

_CONDITION_FAILED = "ConditionalCheckFailedException"


def _to_dynamo_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_dynamo_value(v) for v in value]
    return value


def _is_condition_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == _CONDITION_FAILED


class DynamoMeetingStoreAdapter:
    """Amazon DynamoDB implementation of MeetingStorePort.

    Table key: ``id`` (partition key, no sort key).
    Listing uses a GSI on ``user_id`` with ``created_at`` as sort key.
    """

    def __init__(
        self,
        table_name: str,
        region: str = Defaults.AWS_REGION,
        endpoint_url: str = "",
        dynamodb_resource: Optional[object] = None,
        user_index: str = "user_id-created_at-index",
    ) -> None:
        self._table_name = table_name
        self._user_index = user_index
        resource_kwargs: dict = {"region_name": region}
        if endpoint_url:
            resource_kwargs["endpoint_url"] = endpoint_url
        self._dynamo = dynamodb_resource or boto3.resource(
            "dynamodb", **resource_kwargs
        )
        self._table = self._dynamo.Table(table_name)

    # ------------------------------------------------------------------
    # MeetingStorePort implementation
    # ------------------------------------------------------------------

    def insert(self, meeting: Meeting) -> None:
        item = self._to_dynamo_item(meeting)
        try:
            self._table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(id)",
            )
            logger.info("dynamo_insert_meeting", meeting_id=meeting.id)
        except ClientError as exc:
            logger.error(
                "dynamo_insert_meeting_failed",
                meeting_id=meeting.id,
                error=str(exc),
            )
            raise ExternalServiceError(
                "DynamoDB", f"Failed to insert meeting: {exc}"
            ) from exc

    def get(self, meeting_id: str, user_id: Optional[str] = None) -> Optional[Meeting]:
        try:
            response = self._table.get_item(Key={"id": meeting_id})
        except ClientError as exc:
            logger.error(
                "dynamo_get_meeting_failed",
                meeting_id=meeting_id,
                error=str(exc),
            )
            raise ExternalServiceError(
                "DynamoDB", f"Failed to get meeting: {exc}"
            ) from exc

        item = response.get("Item")
        if item is None:
            return None
        if user_id is not None and item.get("user_id") != user_id:
            return None
        return self._from_dynamo_item(item)

    def list(
        self,
        user_id: str,
        status: Optional[MeetingStatus] = None,
        limit: int = Defaults.LIST_LIMIT,
        offset: int = 0,
    ) -> List[Meeting]:
        query_kwargs: Dict[str, Any] = {
            "IndexName": self._user_index,
            "KeyConditionExpression": Key("user_id").eq(user_id),
            "ScanIndexForward": False,
        }
        if status is not None:
            query_kwargs["FilterExpression"] = Attr("status").eq(status.value)

        items = self._query_all(query_kwargs, stop_after=offset + limit)
        logger.info(
            "dynamo_list_meetings",
            user_id=user_id,
            status=status.value if status else None,
            results=len(items),
        )
        return [self._from_dynamo_item(item) for item in items[offset:offset + limit]]

    def count_by_agent(self, agent_id: str) -> int:
        scan_kwargs: Dict[str, Any] = {
            "FilterExpression": Attr("agent_id").eq(agent_id),
            "Select": "COUNT",
        }
        total = 0
        try:
            while True:
                response = self._table.scan(**scan_kwargs)
                total += int(response.get("Count", 0))
                last_key = response.get("LastEvaluatedKey")
                if last_key is None:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key
        except ClientError as exc:
            logger.error("dynamo_count_by_agent_failed", agent_id=agent_id, error=str(exc))
            raise ExternalServiceError(
                "DynamoDB", f"Failed to count meetings: {exc}"
            ) from exc
        return total

    def count_by_status(self, user_id: str) -> Dict[MeetingStatus, int]:
        items = self._query_all(
            {
                "IndexName": self._user_index,
                "KeyConditionExpression": Key("user_id").eq(user_id),
                "ProjectionExpression": "#status",
                "ExpressionAttributeNames": {"#status": "status"},
            }
        )
        counts: Dict[MeetingStatus, int] = {}
        for item in items:
            status = MeetingStatus(item["status"])
            counts[status] = counts.get(status, 0) + 1
        return counts

    def update_fields(
        self,
        meeting_id: str,
        changes: Dict[str, Any],
        user_id: Optional[str] = None,
        expected_statuses: Optional[Iterable[MeetingStatus]] = None,
        require_unset: Iterable[str] = (),
    ) -> Optional[Meeting]:
        ensure_plain_changes(changes)
        return self._conditional_update(
            meeting_id,
            changes=dict(changes),
            user_id=user_id,
            expected=frozenset(expected_statuses) if expected_statuses is not None else None,
            require_unset=tuple(require_unset),
        )

    def transition(
        self,
        meeting_id: str,
        expected: Iterable[MeetingStatus],
        target: MeetingStatus,
        changes: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        require_unset: Iterable[str] = (),
    ) -> Optional[Meeting]:
        sources = ensure_edges(expected, target)
        updates = dict(changes or {})
        updates["status"] = target
        updated = self._conditional_update(
            meeting_id,
            changes=updates,
            user_id=user_id,
            expected=sources,
            require_unset=tuple(require_unset),
        )
        logger.info(
            "dynamo_transition",
            meeting_id=meeting_id,
            expected=sorted(s.value for s in sources),
            target=target.value,
            applied=updated is not None,
        )
        return updated

    def delete(self, meeting_id: str, user_id: str) -> bool:
        try:
            self._table.delete_item(
                Key={"id": meeting_id},
                ConditionExpression="attribute_exists(id) AND #owner = :owner",
                ExpressionAttributeNames={"#owner": "user_id"},
                ExpressionAttributeValues={":owner": user_id},
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                return False
            logger.error("dynamo_delete_meeting_failed", meeting_id=meeting_id, error=str(exc))
            raise ExternalServiceError(
                "DynamoDB", f"Failed to delete meeting: {exc}"
            ) from exc
        logger.info("dynamo_delete_meeting", meeting_id=meeting_id)
        return True

    # ------------------------------------------------------------------
    # Expression helpers
    # ------------------------------------------------------------------

    def _conditional_update(
        self,
        meeting_id: str,
        changes: Dict[str, Any],
        user_id: Optional[str],
        expected: Optional[frozenset],
        require_unset: Tuple[str, ...],
    ) -> Optional[Meeting]:
        changes["updated_at"] = utc_now()
        update_expr, names, values = self._build_update(changes)
        condition, cond_names, cond_values = self._build_condition(
            user_id, expected, require_unset
        )
        names.update(cond_names)
        values.update(cond_values)

        update_kwargs: Dict[str, Any] = {
            "Key": {"id": meeting_id},
            "UpdateExpression": update_expr,
            "ConditionExpression": condition,
            "ExpressionAttributeNames": names,
            "ReturnValues": "ALL_NEW",
        }
        if values:
            update_kwargs["ExpressionAttributeValues"] = values

        try:
            response = self._table.update_item(**update_kwargs)
        except ClientError as exc:
            if _is_condition_failure(exc):
                return None
            logger.error(
                "dynamo_update_meeting_failed",
                meeting_id=meeting_id,
                error=str(exc),
            )
            raise ExternalServiceError(
                "DynamoDB", f"Failed to update meeting: {exc}"
            ) from exc

        return self._from_dynamo_item(response["Attributes"])

    @staticmethod
    def _build_update(changes: Dict[str, Any]) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}
        set_parts: List[str] = []
        remove_parts: List[str] = []

        for i, (field, value) in enumerate(sorted(changes.items())):
            names[f"#f{i}"] = field
            # None clears the attribute so attribute_not_exists() conditions stay meaningful
            if value is None:
                remove_parts.append(f"#f{i}")
            else:
                values[f":v{i}"] = _to_dynamo_value(value)
                set_parts.append(f"#f{i} = :v{i}")

        expr = "SET " + ", ".join(set_parts)
        if remove_parts:
            expr += " REMOVE " + ", ".join(remove_parts)
        return expr, names, values

    @staticmethod
    def _build_condition(
        user_id: Optional[str],
        expected: Optional[frozenset],
        require_unset: Tuple[str, ...],
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        parts = ["attribute_exists(id)"]
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}

        if user_id is not None:
            names["#owner"] = "user_id"
            values[":owner"] = user_id
            parts.append("#owner = :owner")

        if expected:
            names["#cur"] = "status"
            placeholders = []
            for i, status in enumerate(sorted(expected, key=lambda s: s.value)):
                values[f":s{i}"] = status.value
                placeholders.append(f":s{i}")
            parts.append(f"#cur IN ({', '.join(placeholders)})")

        for i, field in enumerate(require_unset):
            names[f"#u{i}"] = field
            parts.append(f"attribute_not_exists(#u{i})")

        return " AND ".join(parts), names, values

    def _query_all(
        self, query_kwargs: Dict[str, Any], stop_after: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        try:
            # Handle pagination
            while True:
                response = self._table.query(**query_kwargs)
                items.extend(response.get("Items", []))
                if stop_after is not None and len(items) >= stop_after:
                    break
                last_key = response.get("LastEvaluatedKey")
                if last_key is None:
                    break
                query_kwargs["ExclusiveStartKey"] = last_key
        except ClientError as exc:
            logger.error("dynamo_query_meetings_failed", error=str(exc))
            raise ExternalServiceError(
                "DynamoDB", f"Failed to query meetings: {exc}"
            ) from exc
        return items

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_dynamo_item(meeting: Meeting) -> Dict[str, Any]:
        """Convert domain Meeting → DynamoDB item dict (null fields omitted)."""
        data = meeting.model_dump(mode="json")
        return {key: value for key, value in data.items() if value is not None}

    @staticmethod
    def _from_dynamo_item(item: Dict[str, Any]) -> Meeting:
        """Convert DynamoDB item dict → domain Meeting."""
        return Meeting.model_validate(item)
