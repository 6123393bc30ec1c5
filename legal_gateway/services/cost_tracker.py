"""
Cost Tracker Service

Tracks pay-per-call spend of the gateway's external data sources in Redis:
court search API pages (a fixed per-page price) and the cost remote tool
services report back with each response.

Pattern: Repository pattern with Redis storage
Pattern: Atomic HINCRBY/HINCRBYFLOAT pipelines, daily aggregation
"""

from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field
from redis.asyncio import Redis
from redis.exceptions import RedisError


class CostTrackerError(Exception):
    """Base exception for cost tracker errors."""

    pass


class UsageSummary(BaseModel):
    """
    Daily spend summary.

    Attributes:
        search_pages: Court search API pages fetched
        search_cost: Estimated search API spend in USD
        remote_calls: Remote tool calls that reported a cost
        remote_cost: Reported remote spend in USD
    """

    search_pages: int = Field(default=0, description="Search API pages fetched")
    search_cost: float = Field(default=0.0, description="Search API spend in USD")
    remote_calls: int = Field(default=0, description="Remote calls with reported cost")
    remote_cost: float = Field(default=0.0, description="Remote spend in USD")

    @property
    def total_cost(self) -> float:
        return round(self.search_cost + self.remote_cost, 6)


class CostTracker:
    """
    Service for tracking external API spend.

    Attributes:
        redis: Redis client for persistence
    """

    DAILY_KEY_PREFIX = "legal:cost:daily:"
    OPERATION_KEY_PREFIX = "legal:cost:op:"

    def __init__(self, redis_client: Redis) -> None:
        self._redis = redis_client

    def _get_daily_key(self, target_date: Optional[dt.date] = None) -> str:
        target = target_date or dt.date.today()
        return f"{self.DAILY_KEY_PREFIX}{target.isoformat()}"

    def _get_operation_key(self, source: str, target_date: Optional[dt.date] = None) -> str:
        target = target_date or dt.date.today()
        return f"{self.OPERATION_KEY_PREFIX}{target.isoformat()}:{source}"

    async def record_search_pages(
        self,
        operation: str,
        pages: int,
        cost: float,
    ) -> UsageSummary:
        """
        Record search API pages fetched by one operation.

        Args:
            operation: Tool that fetched the pages
            pages: Page count
            cost: Estimated cost of those pages in USD

        Returns:
            Updated usage summary for today

        Raises:
            CostTrackerError: If Redis fails
        """
        daily_key = self._get_daily_key()
        operation_key = self._get_operation_key(f"search:{operation}")
        try:
            pipe = self._redis.pipeline()
            pipe.hincrby(daily_key, "search_pages", pages)
            pipe.hincrbyfloat(daily_key, "search_cost", cost)
            pipe.hincrby(operation_key, "pages", pages)
            pipe.hincrbyfloat(operation_key, "cost", cost)
            await pipe.execute()
        except RedisError as e:
            raise CostTrackerError(f"Failed to record search usage: {e}") from e
        return await self.get_daily_usage()

    async def record_remote_cost(
        self,
        provider: str,
        operation: str,
        cost: float,
    ) -> UsageSummary:
        """
        Record the cost a remote tool service reported for one call.

        Raises:
            CostTrackerError: If Redis fails
        """
        daily_key = self._get_daily_key()
        operation_key = self._get_operation_key(f"{provider}:{operation}")
        try:
            pipe = self._redis.pipeline()
            pipe.hincrby(daily_key, "remote_calls", 1)
            pipe.hincrbyfloat(daily_key, "remote_cost", cost)
            pipe.hincrby(operation_key, "calls", 1)
            pipe.hincrbyfloat(operation_key, "cost", cost)
            await pipe.execute()
        except RedisError as e:
            raise CostTrackerError(f"Failed to record remote cost: {e}") from e
        return await self.get_daily_usage()

    async def get_daily_usage(self, date: Optional[dt.date] = None) -> UsageSummary:
        """
        Get usage summary for a specific day (defaults to today).

        Raises:
            CostTrackerError: If Redis fails
        """
        try:
            data = await self._redis.hgetall(self._get_daily_key(date))
        except RedisError as e:
            raise CostTrackerError(f"Failed to read usage: {e}") from e
        if not data:
            return UsageSummary()
        return UsageSummary(
            search_pages=int(data.get("search_pages", 0)),
            search_cost=float(data.get("search_cost", 0.0)),
            remote_calls=int(data.get("remote_calls", 0)),
            remote_cost=float(data.get("remote_cost", 0.0)),
        )
