class MonitoringError(Exception):
    """Base error for a failed monitoring invocation."""


class ProbeUnavailableError(MonitoringError):
    """
    The stream probe returned no usable data.

    Raised before any state is mutated; the next scheduled tick retries.
    """

    def __init__(self, channel_id: str, detail: str):
        super().__init__(f"[{channel_id}] {detail}")
        self.channel_id = channel_id


class StoreError(MonitoringError):
    """Persisting or loading a monitored channel failed."""
