from flask import request # For accessing request context (e.g., host_url).
from urllib.parse import urlparse, urljoin # URL parsing utilities.


def is_safe_url(target):
    """
    Checks if a target URL is safe for redirection.
    A URL is considered safe if it has a scheme of 'http' or 'https'
    and its network location (netloc, i.e., domain) matches the application's host.
    Used for the accessibility panel's `next` redirect, to avoid open redirects.

    Args:
        target (str or None): The URL to check. Can be relative or absolute.

    Returns:
        bool: True if the target URL is safe, False otherwise.
    """
    # Ensure target is a string; anything else is not a URL we redirect to.
    if target is None or not isinstance(target, str):
        return False

    # Get the reference URL from the current request's host URL (e.g., "http://localhost:3001/").
    ref_url = urlparse(request.host_url)

    # Join the target with the host URL so relative paths resolve against this site,
    # while absolute URLs to other hosts keep their own netloc.
    test_url = urlparse(urljoin(request.host_url, target))

    # Check if the scheme is HTTP or HTTPS and if the network location (domain) matches.
    return test_url.scheme in ('http', 'https') and \
           ref_url.netloc == test_url.netloc
