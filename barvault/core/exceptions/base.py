"""barvault核心异常类."""

from typing import Any


class BarVaultError(Exception):
    """barvault基础异常类."""

    def __init__(
        self,
        message: str,
        error_code: str = "GENERAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        """初始化异常.

        Args:
            message: 错误消息
            error_code: 错误代码
            details: 额外详情
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class FetchError(BarVaultError):
    """上游行情接口请求异常 (可重试)."""

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
        error_code: str = "FETCH_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details["provider"] = provider
        if status_code is not None:
            super_details["status_code"] = status_code
        super().__init__(message, error_code, super_details)
        self.provider = provider
        self.status_code = status_code


class FetchRetryExhaustedError(FetchError):
    """重试次数耗尽异常."""

    def __init__(
        self,
        message: str,
        provider: str,
        attempts: int,
        last_error: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details["attempts"] = attempts
        if last_error is not None:
            super_details["last_error"] = str(last_error)
        status_code = getattr(last_error, "status_code", None)
        super().__init__(message, provider, status_code, "FETCH_RETRY_EXHAUSTED", super_details)
        self.attempts = attempts
        self.last_error = last_error


class BarValidationError(BarVaultError):
    """K线数据校验异常."""

    def __init__(
        self,
        message: str,
        issues: list[Any] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if issues:
            super_details["issues"] = [str(issue) for issue in issues]
        super().__init__(message, "VALIDATION_ERROR", super_details)
        self.issues = list(issues or [])


class CalendarUnavailableError(BarVaultError):
    """交易日历数据不可用异常."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, "CALENDAR_UNAVAILABLE", details)


class JobStateError(BarVaultError):
    """回填任务状态异常."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if job_id:
            super_details["job_id"] = job_id
        super().__init__(message, "JOB_STATE_ERROR", super_details)
        self.job_id = job_id


class StorageError(BarVaultError):
    """存储层异常."""

    def __init__(
        self,
        message: str,
        table: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if table:
            super_details["table"] = table
        super().__init__(message, "STORAGE_ERROR", super_details)


class ConfigError(BarVaultError):
    """配置异常."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, "CONFIG_ERROR", details)
