"""Exit codes shared by CLI commands."""

SUCCESS_EXIT_CODE = 0
SYSTEM_EXIT_CODE = 1
VALIDATION_EXIT_CODE = 2
QUALITY_FAIL_EXIT_CODE = 3
PARTIAL_FAILURE_EXIT_CODE = 4

__all__ = [
    "PARTIAL_FAILURE_EXIT_CODE",
    "QUALITY_FAIL_EXIT_CODE",
    "SUCCESS_EXIT_CODE",
    "SYSTEM_EXIT_CODE",
    "VALIDATION_EXIT_CODE",
]
