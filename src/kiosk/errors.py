"""Error hierarchy for the kiosk display.

Fetch errors are split into transient failures (retried by tenacity) and
permanent failures (reported straight to whoever asked for the refresh):

    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(3))
    def fetch_timetable(host, event_id):
        ...

Neither kind ever reaches passive readers of the timetable store: the
previous table keeps serving.
"""


class KioskError(Exception):
    """Base exception for all kiosk display errors."""

    pass


class FetchError(KioskError):
    """The remote timetable could not be fetched or parsed."""

    pass


class TransientError(FetchError):
    """Temporary failure that may succeed on retry.

    Examples: network timeouts, connection resets, 503 Service Unavailable.
    """

    pass


class RateLimitError(TransientError):
    """Indico answered 429 - needs longer backoff.

    Inherits from TransientError so tenacity will retry it.
    """

    pass


class PermanentError(FetchError):
    """Failure that won't succeed on retry.

    Examples: 404, malformed JSON, a timetable entry missing its dates.
    """

    pass


class EventNotFoundError(PermanentError):
    """The export does not contain the requested event id."""

    def __init__(self, event_id: int) -> None:
        super().__init__(f"indico: no event with id={event_id}")
        self.event_id = event_id


class RenderError(KioskError):
    """A snapshot could not be rendered into transport-ready markup."""

    pass
