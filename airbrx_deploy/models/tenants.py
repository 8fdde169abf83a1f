"""Initial tenant configuration and caching rules."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

WRITE_STATEMENTS: list[str] = [
    "INSERT",
    "UPDATE",
    "DELETE",
    "CREATE",
    "DROP",
    "ALTER",
    "TRUNCATE",
]


class DataAdapter(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str = "snowflake"
    server_hostname: str = "your-account.snowflakecomputing.com"
    http_path: str = ""
    cloud_files_base_url: str = Field(alias="cloudFilesBaseUrl")
    disable_session_spoofing: bool = Field(default=False, alias="disableSessionSpoofing")
    disable_operation_spoofing: bool = Field(default=False, alias="disableOperationSpoofing")


class TenantStorage(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str = "s3"
    bucket: str
    region: str
    base_path: str = Field(default="storage", alias="basePath")


class TenantLogging(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    log_to_file: bool = Field(default=True, alias="logToFile")
    log_requests: bool = Field(default=True, alias="logRequests")
    log_level: str = Field(default="info", alias="logLevel")


class TenantConfiguration(BaseModel):
    """``config/tenants/<tenantId>/conf.json``.

    The tenant id is the gateway's host name, which is what the gateway
    matches incoming requests against.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tenant_id: str = Field(alias="tenantId")
    tenant_name: str = Field(alias="tenantName")
    data_adapter: DataAdapter = Field(alias="dataAdapter")
    storage: TenantStorage
    logging: TenantLogging = TenantLogging()

    @classmethod
    def initial(cls, tenant_id: str, tenant_name: str, bucket: str, region: str) -> TenantConfiguration:
        return cls(
            tenant_id=tenant_id,
            tenant_name=tenant_name,
            data_adapter=DataAdapter(cloud_files_base_url=f"https://{tenant_id}"),
            storage=TenantStorage(bucket=bucket, region=region),
        )

    @property
    def object_key(self) -> str:
        return tenant_object_key(self.tenant_id, "conf.json")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class RuleActions(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cache_key_elements: list[str] = Field(alias="cacheKeyElements")
    cache: dict[str, int]
    version: int = 1

    @property
    def ttl_seconds(self) -> int:
        return self.cache.get("ttlSeconds", 0)


class CachingRule(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    enabled: bool = True
    priority: int
    mode: str = "all"
    conditions: dict[str, Any]
    actions: RuleActions


class CachingRules(BaseModel):
    """``config/tenants/<tenantId>/rules.json``; lower priority wins."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str = "1.0"
    tenant_id: str = Field(alias="tenantId")
    last_updated: str = Field(alias="lastUpdated")
    defaults: dict[str, Any] = {
        "cacheKeyElements": ["userId", "standardizedSql"],
        "ttlSeconds": 3600,
        "version": 1,
    }
    rules: list[CachingRule] = []

    @classmethod
    def initial(cls, tenant_id: str, last_updated: str) -> CachingRules:
        rules = [
            CachingRule(
                id="no-cache-writes",
                name="No Cache for Write Operations",
                priority=5,
                conditions={"statementType": {"in": list(WRITE_STATEMENTS)}},
                actions=RuleActions(cache_key_elements=[], cache={"ttlSeconds": 0}),
            ),
            CachingRule(
                id="cache-select-queries",
                name="Cache SELECT Queries",
                priority=15,
                conditions={"statementType": {"equals": "SELECT"}},
                actions=RuleActions(
                    cache_key_elements=["userId", "standardizedSql"],
                    cache={"ttlSeconds": 86400},
                ),
            ),
        ]
        return cls(tenant_id=tenant_id, last_updated=last_updated, rules=rules)

    @property
    def object_key(self) -> str:
        return tenant_object_key(self.tenant_id, "rules.json")

    def ordered(self) -> list[CachingRule]:
        return sorted(self.rules, key=lambda rule: rule.priority)

    def to_record(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True)
        data["rules"] = [rule.model_dump(by_alias=True) for rule in self.ordered()]
        return data


def tenant_object_key(tenant_id: str, filename: str) -> str:
    return f"config/tenants/{tenant_id}/{filename}"
