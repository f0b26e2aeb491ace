"""Exception classes for bleprobe."""


class ProbeError(Exception):
    """Base exception for all probe errors."""

    pass


class TransportError(ProbeError):
    """A write, subscribe or read on a characteristic failed."""

    pass


class NotFoundError(ProbeError):
    """A declared characteristic is not present on the device."""

    pass


class DeviceNotFoundError(NotFoundError):
    """No advertising device matched within the scan timeout."""

    pass


class ConnectionError(ProbeError):
    """Error connecting to or enumerating the device."""

    pass


class ProtocolUnknown(ProbeError):
    """No write protocol was confirmed for the device."""

    pass


class ProfileError(ProbeError):
    """Profile database could not be read, fetched or validated."""

    pass


class SessionStateError(ProbeError):
    """A discovery session phase was advanced out of order."""

    pass
