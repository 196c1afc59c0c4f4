"""fetchspine.core -- domain-agnostic primitives of the request layer.

Architecture::

    errors.py          ClassifiedError taxonomy, FetchSpineError base, config errors
    logging.py         structlog configuration and context binding
    settings.py        FetchSpineSettings (pydantic-settings, FETCHSPINE_ prefix)
    hashing.py         URL normalization and request signatures
    connectivity.py    ConnectivityChecker protocol and implementations
    cancellation.py    CancellationToken and cancellable awaits/sleeps
"""
