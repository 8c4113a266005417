"""重试机制实现, 固定间隔的有界重试."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from barvault.core.exceptions import FetchError, FetchRetryExhaustedError
from barvault.core.logging import logger

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[Any]]


class RetryState(Enum):
    """重试状态."""

    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RetryConfig:
    """重试配置."""

    max_attempts: int = 3  # 最大尝试次数 (含首次)
    delay: float = 5.0  # 固定间隔(秒)
    provider: str = "upstream"
    retry_on_exceptions: tuple[type[BaseException], ...] = field(default_factory=lambda: (FetchError,))


class FixedDelayRetry:
    """固定间隔的有界重试.

    每次失败后等待 ``delay`` 秒再试, 达到 ``max_attempts`` 后抛出
    :class:`FetchRetryExhaustedError`, 不做指数退避.
    """

    def __init__(self, config: RetryConfig, *, sleep: SleepFunc | None = None):
        self.config = config
        self.sleep = sleep or asyncio.sleep
        self.attempt_count = 0
        self.total_delay = 0.0
        self.state = RetryState.READY
        self.last_exception: BaseException | None = None

    async def execute(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """执行函数, 应用重试逻辑.

        Args:
            func: 要执行的协程函数
            *args: 函数参数
            **kwargs: 函数关键字参数

        Returns:
            函数返回结果

        Raises:
            FetchRetryExhaustedError: 所有尝试均失败
            Exception: 不在 ``retry_on_exceptions`` 中的异常直接抛出
        """
        self.state = RetryState.RUNNING
        self.attempt_count = 0
        self.total_delay = 0.0

        while self.attempt_count < self.config.max_attempts:
            self.attempt_count += 1
            try:
                result = await func(*args, **kwargs)
            except self.config.retry_on_exceptions as exc:
                self.last_exception = exc
                if self.attempt_count >= self.config.max_attempts:
                    break
                logger.warning(
                    "[Retry] attempt {}/{} failed: {}; retrying in {}s",
                    self.attempt_count,
                    self.config.max_attempts,
                    exc,
                    self.config.delay,
                )
                await self.sleep(self.config.delay)
                self.total_delay += self.config.delay
            except Exception as exc:
                self.last_exception = exc
                self.state = RetryState.FAILED
                raise
            else:
                self.state = RetryState.COMPLETED
                return result

        self.state = RetryState.FAILED
        raise FetchRetryExhaustedError(
            f"{self.config.provider} request failed after {self.attempt_count} attempts: {self.last_exception}",
            provider=self.config.provider,
            attempts=self.attempt_count,
            last_error=self.last_exception,
        )


__all__ = ["FixedDelayRetry", "RetryConfig", "RetryState", "SleepFunc"]
