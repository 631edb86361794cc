"""Base abstract class for ECS API implementations."""

from abc import ABC, abstractmethod

from ecs_cleaner.schemas.ecs import Page, Service


class ECSProviderBase(ABC):
    """
    Abstract base class for the ECS operations the cleaner consumes.

    The AWS implementation talks to a real account; tests provide scripted
    implementations so the whole pipeline runs without one.

    ``session_generation`` goes up by one on every successful
    ``refresh_session``. Callers record it before a call to tell whether a
    credential failure happened on a session that has already been replaced.
    """

    session_generation: int = 0

    @abstractmethod
    async def list_clusters(self, next_token: str | None = None) -> Page:
        """
        List one page of cluster ARNs.

        Args:
            next_token: Continuation token from the previous page

        Returns:
            Page of cluster ARNs
        """
        pass

    @abstractmethod
    async def list_services(self, cluster_arn: str, next_token: str | None = None) -> Page:
        """
        List one page of service ARNs in a cluster.

        Args:
            cluster_arn: Cluster to list
            next_token: Continuation token from the previous page

        Returns:
            Page of service ARNs
        """
        pass

    @abstractmethod
    async def describe_services(self, cluster_arn: str, service_arns: list[str]) -> list[Service]:
        """
        Describe up to 10 services of one cluster.

        Args:
            cluster_arn: Cluster owning the services
            service_arns: Service ARNs (at most 10)

        Returns:
            Described services, each with its in-use task definition
        """
        pass

    @abstractmethod
    async def list_task_definitions(
        self,
        family_prefix: str | None = None,
        sort: str | None = None,
        next_token: str | None = None,
    ) -> Page:
        """
        List one page of task definition ARNs.

        Args:
            family_prefix: Restrict the listing to one family
            sort: "ASC" or "DESC" by family and revision
            next_token: Continuation token from the previous page

        Returns:
            Page of task definition ARNs
        """
        pass

    @abstractmethod
    async def deregister_task_definition(self, task_definition_arn: str) -> None:
        """
        Deregister one task definition revision.

        Raises:
            ClientError: If the API rejects the request
        """
        pass

    async def refresh_session(self) -> None:
        """Re-establish the API session after its credentials expired."""
        pass

    async def validate_credentials(self) -> dict[str, str]:
        """Return caller identity details for the configured credentials."""
        return {}
