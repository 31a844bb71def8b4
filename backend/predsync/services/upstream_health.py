class UpstreamHealth:
    """Process-wide consecutive-failure counter for upstream calls.

    Used for operational visibility only; nothing in the pipeline changes
    behavior based on it.
    """

    _consecutive_failures: int = 0

    @classmethod
    def record_success(cls) -> None:
        cls._consecutive_failures = 0

    @classmethod
    def record_failure(cls) -> int:
        cls._consecutive_failures += 1
        return cls._consecutive_failures

    @classmethod
    def consecutive_failures(cls) -> int:
        return cls._consecutive_failures

    @classmethod
    def reset(cls) -> None:
        cls._consecutive_failures = 0
