"""Tests for task definition ARN parsing."""

import pytest

from ecs_cleaner.core.arn import TaskDefinitionRef, family_of, parse_task_definition_arn
from ecs_cleaner.core.errors import MalformedArnError


class TestParseTaskDefinitionArn:
    """Test parse_task_definition_arn."""

    def test_full_arn(self):
        """A real ECS ARN yields family and revision."""
        ref = parse_task_definition_arn(
            "arn:aws:ecs:us-east-1:123456789012:task-definition/web-app_v2:42"
        )

        assert ref == TaskDefinitionRef(family="web-app_v2", revision=42)
        assert str(ref) == "web-app_v2:42"

    def test_short_form(self):
        """Bare family:revision strings are accepted."""
        assert parse_task_definition_arn("family0:3") == TaskDefinitionRef("family0", 3)

    def test_prefixed_without_slash(self):
        """Only the last two ':' segments matter."""
        assert family_of("aws-blather:family4:1") == "family4"

    @pytest.mark.parametrize(
        "arn",
        [
            "no-colon-at-all",
            "family:latest",
            "family:",
            "arn:aws:ecs:us-east-1:123456789012:task-definition/:7",
            "arn:aws:ecs:us-east-1:123456789012:task-definition/bad.name:7",
            "family:-1",
            "family:²",
        ],
    )
    def test_malformed(self, arn):
        """Malformed ARNs raise MalformedArnError, a ValueError."""
        with pytest.raises(MalformedArnError) as exc_info:
            parse_task_definition_arn(arn)

        assert exc_info.value.arn == arn
        assert isinstance(exc_info.value, ValueError)
