class SuppressionFlag:
    """One-shot guard set right before a controlled exit.

    The next persist check consumes it, so the teardown or background event
    caused by the exit does not write the session back.
    """

    def __init__(self) -> None:
        self._is_set: bool = False

    @property
    def is_set(self) -> bool:
        return self._is_set

    def set(self) -> None:
        self._is_set = True

    def consume(self) -> bool:
        """Return whether the flag was set, resetting it."""
        was_set, self._is_set = self._is_set, False
        return was_set
