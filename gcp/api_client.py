# gcp/api_client.py

import threading
import logging
import requests
import google.auth
from google.auth.transport.requests import AuthorizedSession

from decision.errors import CollaboratorError
from gcp.gcp_config import CLOUD_PLATFORM_SCOPE

# Lazy-loaded credentials shared by every thread (singleton pattern)
_credentials = None
_credentials_lock = threading.Lock()

# requests.Session is not thread-safe: one session per worker thread
_local = threading.local()


def get_credentials():
    """Load Application Default Credentials (lazy-loaded, cached after first call)."""
    global _credentials
    with _credentials_lock:
        if _credentials is None:
            _credentials, project = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
            logging.info(f"Loaded Application Default Credentials (default project: {project})")
        return _credentials


def get_authorized_session() -> AuthorizedSession:
    """
    Requests session authorized with Application Default Credentials,
    created once per calling thread.
    """
    session = getattr(_local, "session", None)
    if session is None:
        session = AuthorizedSession(get_credentials())
        _local.session = session
    return session


def request_before_deadline(session, stage, method, url, deadline, http_timeout, monotonic, **kwargs):
    """
    Issue one API call, bounded by both http_timeout and the caller's deadline.

    Args:
        session: requests-compatible session
        stage: CollaboratorError stage reported on failure
        deadline: monotonic() value after which no call is made, or None
        http_timeout: Upper bound for this single call (seconds)
        monotonic: Clock the deadline was computed with

    Returns:
        requests.Response

    Raises:
        CollaboratorError: On deadline exhaustion, timeout or transport failure
    """
    call_timeout = http_timeout
    if deadline is not None:
        remaining = deadline - monotonic()
        if remaining <= 0:
            raise CollaboratorError(stage, f"Deadline exceeded before {method} {url}", reason=CollaboratorError.TIMEOUT)
        call_timeout = min(call_timeout, remaining)

    try:
        return session.request(method, url, timeout=call_timeout, **kwargs)
    except requests.exceptions.Timeout as e:
        logging.error(f"{method} {url} timed out: {e}")
        raise CollaboratorError(stage, f"{method} {url} timed out: {e}", reason=CollaboratorError.TIMEOUT) from e
    except requests.exceptions.RequestException as e:
        logging.error(f"{method} {url} failed: {e}")
        raise CollaboratorError(stage, f"{method} {url} failed: {e}") from e
