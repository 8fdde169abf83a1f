"""Function host client — wrapper over the Lambda API."""

from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import ClientError
from pydantic import BaseModel, ConfigDict

from airbrx_deploy.core.environment import EnvironmentDocument
from airbrx_deploy.providers.errors import is_already_exists, is_not_found

logger = logging.getLogger(__name__)

URL_PERMISSION_STATEMENT = "FunctionURLAllowPublicAccess"


class FunctionInfo(BaseModel):
    """The parts of a function's configuration the deployer reads back."""

    model_config = ConfigDict(frozen=True)

    name: str
    arn: str
    state: str = ""
    last_update_status: str = ""
    runtime: str = ""
    memory_mb: int = 0
    timeout_seconds: int = 0
    handler: str = ""
    environment: dict[str, str] = {}


class ComputeClient:
    """Create, update, inspect and delete functions and their URLs.

    Parameters
    ----------
    lambda_client:
        A boto3 ``lambda`` client.
    waiter_delay, waiter_max_attempts:
        Pacing for the ``function_updated``/``function_active`` waiters.
    """

    def __init__(self, lambda_client: Any, *, waiter_delay: int = 5, waiter_max_attempts: int = 60) -> None:
        self._lambda = lambda_client
        self._waiter_config = {"Delay": waiter_delay, "MaxAttempts": waiter_max_attempts}

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def get_function(self, name: str) -> FunctionInfo | None:
        try:
            response = self._lambda.get_function(FunctionName=name)
        except ClientError as e:
            if is_not_found(e):
                return None
            raise
        conf = response["Configuration"]
        return FunctionInfo(
            name=conf["FunctionName"],
            arn=conf["FunctionArn"],
            state=conf.get("State", ""),
            last_update_status=conf.get("LastUpdateStatus", ""),
            runtime=conf.get("Runtime", ""),
            memory_mb=conf.get("MemorySize", 0),
            timeout_seconds=conf.get("Timeout", 0),
            handler=conf.get("Handler", ""),
            environment=conf.get("Environment", {}).get("Variables", {}),
        )

    def create_function(
        self,
        name: str,
        *,
        role_arn: str,
        handler: str,
        runtime: str,
        memory_mb: int,
        timeout_seconds: int,
        environment: dict[str, str],
        package: bytes,
    ) -> str:
        response = self._lambda.create_function(
            FunctionName=name,
            Runtime=runtime,
            Role=role_arn,
            Handler=handler,
            Code={"ZipFile": package},
            MemorySize=memory_mb,
            Timeout=timeout_seconds,
            Environment=EnvironmentDocument(variables=environment).to_aws(),
        )
        logger.info("Created function %s", name)
        return response["FunctionArn"]

    def update_function_code(self, name: str, package: bytes) -> str:
        response = self._lambda.update_function_code(FunctionName=name, ZipFile=package)
        return response["FunctionArn"]

    def update_function_configuration(
        self,
        name: str,
        *,
        role_arn: str,
        handler: str,
        runtime: str,
        memory_mb: int,
        timeout_seconds: int,
        environment: dict[str, str],
    ) -> str:
        response = self._lambda.update_function_configuration(
            FunctionName=name,
            Role=role_arn,
            Handler=handler,
            Runtime=runtime,
            MemorySize=memory_mb,
            Timeout=timeout_seconds,
            Environment=EnvironmentDocument(variables=environment).to_aws(),
        )
        return response["FunctionArn"]

    def wait_updated(self, name: str) -> None:
        self._lambda.get_waiter("function_updated").wait(
            FunctionName=name, WaiterConfig=self._waiter_config
        )

    def wait_active(self, name: str) -> None:
        self._lambda.get_waiter("function_active").wait(
            FunctionName=name, WaiterConfig=self._waiter_config
        )

    def delete_function(self, name: str) -> None:
        self._lambda.delete_function(FunctionName=name)

    # ------------------------------------------------------------------
    # Function URLs
    # ------------------------------------------------------------------

    def get_function_url(self, name: str) -> str | None:
        try:
            response = self._lambda.get_function_url_config(FunctionName=name)
        except ClientError as e:
            if is_not_found(e):
                return None
            raise
        return response["FunctionUrl"]

    def create_function_url(self, name: str) -> str:
        response = self._lambda.create_function_url_config(FunctionName=name, AuthType="NONE")
        logger.info("Created function URL for %s", name)
        return response["FunctionUrl"]

    def allow_public_url_invoke(self, name: str) -> bool:
        """Grant anonymous ``InvokeFunctionUrl``; False if it was already granted."""
        try:
            self._lambda.add_permission(
                FunctionName=name,
                StatementId=URL_PERMISSION_STATEMENT,
                Action="lambda:InvokeFunctionUrl",
                Principal="*",
                FunctionUrlAuthType="NONE",
            )
        except ClientError as e:
            if is_already_exists(e) or is_not_found(e):
                return False
            raise
        return True

    def delete_function_url(self, name: str) -> bool:
        try:
            self._lambda.delete_function_url_config(FunctionName=name)
        except ClientError as e:
            if is_not_found(e):
                return False
            raise
        return True
