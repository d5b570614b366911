class RpcError(Exception):
    """Base class for every error raised by the RPC layer."""


class EndpointError(RpcError):
    """
    A single endpoint failed to answer.
    Never escapes the FallbackManager: it is recorded and the next endpoint is tried.
    """

    def __init__(self, endpoint, message: str):
        super().__init__(f"{endpoint.label}: {message}")
        self.endpoint = endpoint
        self.message = message


class EndpointUnreachable(EndpointError):
    """Connection refused, DNS failure, TLS error or non-2xx HTTP status."""


class EndpointTimeout(EndpointError):
    """The endpoint did not answer within the per-endpoint timeout."""


class MalformedResponse(EndpointError):
    """The endpoint answered, but not with a usable JSON-RPC result."""


class AllEndpointsUnreachable(RpcError):
    """Fewer than `quorum` endpoints produced an answer."""

    def __init__(self, method: str, failures: dict, quorum: int, answered: int = 0):
        self.method = method
        self.failures = failures  # {endpoint label: EndpointError}
        self.quorum = quorum
        self.answered = answered
        super().__init__(
            f"{method}: {answered} of {quorum} required endpoint(s) answered "
            f"({len(failures)} failed)"
        )


class QuorumDisagreement(RpcError):
    """Enough endpoints answered, but no single value reached quorum."""

    def __init__(self, method: str, votes: list, quorum: int):
        self.method = method
        self.votes = votes  # [(endpoint label, value), ...]
        self.quorum = quorum
        super().__init__(
            f"{method}: no value reached quorum {quorum} among {len(votes)} answers"
        )
