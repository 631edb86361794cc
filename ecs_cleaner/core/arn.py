"""Parsing of task definition revision ARNs."""

import re
from dataclasses import dataclass

from ecs_cleaner.core.errors import MalformedArnError

FAMILY_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class TaskDefinitionRef:
    """Family and revision number encoded at the end of a revision ARN."""

    family: str
    revision: int

    def __str__(self) -> str:
        return f"{self.family}:{self.revision}"


def parse_task_definition_arn(arn: str) -> TaskDefinitionRef:
    """
    Extract family and revision from a task definition ARN.

    The last two ``:``-delimited segments carry ``family`` and ``revision``.
    Real ARNs look like
    ``arn:aws:ecs:us-east-1:123456789012:task-definition/web:42``, so anything up
    to the last ``/`` of the family segment is dropped.

    Args:
        arn: Task definition ARN (or bare ``family:revision``)

    Returns:
        Parsed reference

    Raises:
        MalformedArnError: If the ARN does not end in ``family:revision``
    """
    parts = arn.rsplit(":", 2)
    if len(parts) < 2:
        raise MalformedArnError(arn, "missing ':<revision>' suffix")

    family_segment, revision = parts[-2], parts[-1]
    family = family_segment.rsplit("/", 1)[-1]

    if not (revision.isascii() and revision.isdigit()):
        raise MalformedArnError(arn, f"revision '{revision}' is not a number")
    if not FAMILY_PATTERN.match(family):
        raise MalformedArnError(arn, f"family '{family}' is not a valid family name")

    return TaskDefinitionRef(family=family, revision=int(revision))


def family_of(arn: str) -> str:
    """Shortcut for ``parse_task_definition_arn(arn).family``."""
    return parse_task_definition_arn(arn).family
