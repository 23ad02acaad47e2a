"""Exception types raised by the test runner and persistence layer."""


class TestTimeoutError(TimeoutError):
    """A test body did not settle before its timeout elapsed."""

    __test__ = False

    def __init__(self, timeout: float) -> None:
        """Initialize with the timeout that elapsed, in seconds."""
        super().__init__(f"Test timeout after {timeout:g}s")
        self.timeout = timeout


class HookError(RuntimeError):
    """A lifecycle hook raised."""

    def __init__(self, hook_name: str, cause: BaseException) -> None:
        """Initialize with the hook name and the original exception."""
        super().__init__(f"{hook_name} hook failed: {cause or type(cause).__name__}")
        self.hook_name = hook_name


class IdentityError(ValueError):
    """A test could not be identified (no slug)."""


class PersistenceError(RuntimeError):
    """The database rejected an identity or deletion-tracking operation."""
