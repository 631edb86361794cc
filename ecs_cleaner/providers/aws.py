"""AWS ECS provider implementation."""

import logging
import os
from contextlib import AsyncExitStack
from typing import Any

import aioboto3
from botocore.config import Config
from botocore.exceptions import ClientError, EndpointConnectionError

from ecs_cleaner.core.config import settings
from ecs_cleaner.providers.base import ECSProviderBase
from ecs_cleaner.schemas.ecs import Page, Service

# Logger for AWS connectivity debugging
logger = logging.getLogger(__name__)

DESCRIBE_SERVICES_LIMIT = 10


class AWSECSProvider(ECSProviderBase):
    """
    AWS implementation of the ECS provider interface.

    Uses aioboto3 for async operations. The ECS client is opened once when the
    provider is entered as an async context manager and replaced by
    ``refresh_session`` when the credentials expire:

        async with AWSECSProvider(region="eu-west-1") as provider:
            page = await provider.list_clusters()

    A replaced client is closed as soon as no call is running on it.
    """

    def __init__(
        self,
        region: str | None = None,
        profile: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        session_token: str | None = None,
    ) -> None:
        """
        Initialize AWS ECS provider.

        Args:
            region: AWS region (None = AWS_REGION, then AWS_DEFAULT_REGION, then
                the profile's configured region)
            profile: Named profile (None = AWS_PROFILE setting, if any)
            access_key: AWS Access Key ID (None = AWS_ACCESS_KEY_ID setting)
            secret_key: AWS Secret Access Key (None = AWS_SECRET_ACCESS_KEY setting)
            session_token: AWS session token for temporary credentials
        """
        # botocore itself only reads AWS_DEFAULT_REGION
        self.requested_region = (
            region or os.getenv("AWS_REGION") or settings.AWS_DEFAULT_REGION or None
        )
        self.profile = profile or settings.AWS_PROFILE or None
        self.access_key = access_key or settings.AWS_ACCESS_KEY_ID or None
        self.secret_key = secret_key or settings.AWS_SECRET_ACCESS_KEY or None
        self.session_token = session_token or settings.AWS_SESSION_TOKEN or None

        self.config = Config(
            connect_timeout=settings.AWS_CONNECT_TIMEOUT,
            read_timeout=settings.AWS_READ_TIMEOUT,
            retries={"max_attempts": settings.AWS_MAX_ATTEMPTS, "mode": "standard"},
        )

        self.session = self._new_session()
        self.region: str | None = self.session.region_name
        self.session_generation = 0

        self._entered = False
        self._client: Any = None
        self._client_stacks: dict[int, AsyncExitStack] = {}
        self._in_flight: dict[int, int] = {}

        logger.info(
            f"AWSECSProvider initialized: region={self.region or 'unresolved'}, "
            f"profile={self.profile or 'default chain'}, "
            f"connect_timeout={settings.AWS_CONNECT_TIMEOUT}s, read_timeout={settings.AWS_READ_TIMEOUT}s"
        )

    def _new_session(self) -> aioboto3.Session:
        """Build a session; credentials are re-read from the environment/profile each time."""
        if self.access_key and self.secret_key:
            return aioboto3.Session(
                aws_access_key_id=self.access_key,
                aws_secret_access_key=self.secret_key,
                aws_session_token=self.session_token,
                region_name=self.requested_region,
            )
        return aioboto3.Session(profile_name=self.profile, region_name=self.requested_region)

    async def __aenter__(self) -> "AWSECSProvider":
        self._entered = True
        try:
            await self._open_client(self.session_generation)
        except BaseException:
            self._entered = False
            raise
        return self

    async def __aexit__(self, *exc_info) -> None:
        for generation in list(self._client_stacks):
            await self._close_client(generation)
        self._entered = False
        self._client = None

    async def _open_client(self, generation: int) -> None:
        if not self._entered:
            raise RuntimeError("AWSECSProvider must be used as an async context manager")

        stack = AsyncExitStack()
        self._client = await stack.enter_async_context(
            self.session.client("ecs", region_name=self.region, config=self.config)
        )
        self._client_stacks[generation] = stack

    async def _close_client(self, generation: int) -> None:
        stack = self._client_stacks.pop(generation, None)
        self._in_flight.pop(generation, None)
        if stack is not None:
            logger.debug(f"Closing ECS client of session generation {generation}")
            await stack.aclose()

    @property
    def client(self) -> Any:
        if self._client is None:
            raise RuntimeError("ECS client is not open; use 'async with AWSECSProvider(...)'")
        return self._client

    async def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        """Run one ECS API call, counting it against the client it started on."""
        client = self.client
        generation = self.session_generation
        self._in_flight[generation] = self._in_flight.get(generation, 0) + 1
        try:
            return await getattr(client, operation)(**kwargs)
        finally:
            self._in_flight[generation] -= 1
            if generation != self.session_generation and not self._in_flight[generation]:
                await self._close_client(generation)

    async def refresh_session(self) -> None:
        """
        Re-establish the session and ECS client after credentials expired.

        The previous client stays open while calls started on it are still
        running; the last of them closes it.
        """
        logger.info(f"Refreshing AWS session for region {self.region}")
        retired = self.session_generation

        self.session = self._new_session()
        await self._open_client(retired + 1)
        self.session_generation = retired + 1

        if not self._in_flight.get(retired):
            await self._close_client(retired)

    async def validate_credentials(self) -> dict[str, str]:
        """
        Validate AWS credentials using STS GetCallerIdentity.

        Returns:
            Dict with account_id, arn, user_id

        Raises:
            ClientError: If credentials are invalid
            EndpointConnectionError: If cannot connect to AWS endpoints
        """
        logger.info(f"Validating AWS credentials against STS ({self.region})")

        try:
            async with self.session.client(
                "sts", region_name=self.region, config=self.config
            ) as sts:
                response = await sts.get_caller_identity()

        except EndpointConnectionError as e:
            logger.error(f"Cannot connect to AWS STS endpoint: {e}")
            logger.error("Check outbound HTTPS (port 443), DNS resolution and proxy settings")
            raise

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(f"AWS credential validation failed ({error_code}): {e}")
            raise

        logger.info(f"AWS credentials valid: account={response['Account']} arn={response['Arn']}")

        return {
            "account_id": response["Account"],
            "arn": response["Arn"],
            "user_id": response["UserId"],
        }

    async def list_clusters(self, next_token: str | None = None) -> Page:
        kwargs: dict[str, Any] = {}
        if next_token:
            kwargs["nextToken"] = next_token

        response = await self._call("list_clusters", **kwargs)
        return Page(items=response.get("clusterArns", []), next_token=response.get("nextToken"))

    async def list_services(self, cluster_arn: str, next_token: str | None = None) -> Page:
        kwargs: dict[str, Any] = {"cluster": cluster_arn}
        if next_token:
            kwargs["nextToken"] = next_token

        response = await self._call("list_services", **kwargs)
        return Page(items=response.get("serviceArns", []), next_token=response.get("nextToken"))

    async def describe_services(self, cluster_arn: str, service_arns: list[str]) -> list[Service]:
        if len(service_arns) > DESCRIBE_SERVICES_LIMIT:
            raise ValueError(
                f"describe_services accepts at most {DESCRIBE_SERVICES_LIMIT} services, "
                f"got {len(service_arns)}"
            )

        response = await self._call("describe_services", cluster=cluster_arn, services=service_arns)

        for failure in response.get("failures", []):
            logger.warning(
                f"Could not describe service {failure.get('arn')}: {failure.get('reason')}"
            )

        return [
            Service(
                service_arn=service["serviceArn"],
                cluster_arn=service.get("clusterArn", cluster_arn),
                task_definition=service["taskDefinition"],
                service_name=service.get("serviceName"),
                status=service.get("status"),
            )
            for service in response.get("services", [])
            if service.get("taskDefinition")
        ]

    async def list_task_definitions(
        self,
        family_prefix: str | None = None,
        sort: str | None = None,
        next_token: str | None = None,
    ) -> Page:
        kwargs: dict[str, Any] = {}
        if family_prefix:
            kwargs["familyPrefix"] = family_prefix
        if sort:
            kwargs["sort"] = sort
        if next_token:
            kwargs["nextToken"] = next_token

        response = await self._call("list_task_definitions", **kwargs)
        return Page(
            items=response.get("taskDefinitionArns", []),
            next_token=response.get("nextToken"),
        )

    async def deregister_task_definition(self, task_definition_arn: str) -> None:
        await self._call("deregister_task_definition", taskDefinition=task_definition_arn)
