from typing import Any, Callable, Dict, List, Mapping, Tuple
import logging
from botocore.exceptions import BotoCoreError, ClientError
from ..core.errors import PersistenceFailed, RecordNotFound

"""Per-user record updates in DynamoDB.

Field names may be dot paths (``pictures.profilePic``) addressing nested map
attributes; only the named fields are touched.
"""

logger = logging.getLogger(__name__)

KEY_ALIAS = "#key"


def _path_alias(names: Dict[str, str], path: str, tag: str) -> str:
    parts = []
    for j, segment in enumerate(path.split(".")):
        alias = f"#{tag}_{j}"
        names[alias] = segment
        parts.append(alias)
    return ".".join(parts)


def _set_expression(fields: Mapping[str, Any]) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
    names: Dict[str, str] = {}
    values: Dict[str, Any] = {}
    clauses = []
    for i, (path, value) in enumerate(fields.items()):
        alias = _path_alias(names, path, f"f{i}")
        values[f":v{i}"] = value
        clauses.append(f"{alias} = :v{i}")
    return "SET " + ", ".join(clauses), names, values


def _parent_levels(fields: Mapping[str, Any]) -> List[List[str]]:
    """Group the map parents of nested fields by depth, shallowest first."""
    levels: List[List[str]] = []
    for path in fields:
        segments = path.split(".")
        for depth in range(1, len(segments)):
            parent = ".".join(segments[:depth])
            while len(levels) < depth:
                levels.append([])
            if parent not in levels[depth - 1]:
                levels[depth - 1].append(parent)
    return levels


class UserRecordStore:
    """Updates fields on existing user records; never creates one.

    ``table_factory`` returns a fresh DynamoDB ``Table`` for each update, since
    updates run on worker threads and boto3 resources are not thread-safe.
    """

    def __init__(self, table_factory: Callable[[], Any], key_name: str = "uid"):
        self.table_factory = table_factory
        self.key_name = key_name

    def update(self, uid: str, fields: Mapping[str, Any]) -> None:
        if not fields:
            return
        # Nested SETs need their parent maps to exist first
        for parents in _parent_levels(fields):
            names: Dict[str, str] = {}
            clauses = []
            for i, parent in enumerate(parents):
                alias = _path_alias(names, parent, f"p{i}")
                clauses.append(f"{alias} = if_not_exists({alias}, :empty)")
            self._update(uid, "SET " + ", ".join(clauses), names, {":empty": {}})

        expression, names, values = _set_expression(fields)
        self._update(uid, expression, names, values)
        logger.info("Updated %s for user %s", ", ".join(fields), uid)

    def _update(self, uid: str, expression: str, names: Dict[str, str], values: Dict[str, Any]) -> None:
        names = {**names, KEY_ALIAS: self.key_name}
        try:
            self.table_factory().update_item(
                Key={self.key_name: uid},
                UpdateExpression=expression,
                ConditionExpression=f"attribute_exists({KEY_ALIAS})",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise RecordNotFound(f"No user record for uid {uid}") from e
            raise PersistenceFailed(f"Failed to update user {uid}: {e}") from e
        except BotoCoreError as e:
            raise PersistenceFailed(f"Failed to update user {uid}: {e}") from e
