"""Translate botocore exceptions into provider exceptions."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from botocore.exceptions import (
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    NoRegionError,
    PartialCredentialsError,
    ProfileNotFound,
)

from salio.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
)

logger = logging.getLogger(__name__)

CREDENTIAL_ERROR_CODES = frozenset(
    (
        "AuthFailure",
        "ExpiredToken",
        "ExpiredTokenException",
        "InvalidClientTokenId",
        "RequestExpired",
        "UnrecognizedClientException",
    )
)


@contextmanager
def handle_aws_errors() -> Iterator[None]:
    """Re-raise botocore errors as provider exceptions.

    Raises
    ------
    ProviderCredentialsError
        If credentials or the profile are missing, or AWS rejects them
    ProviderAPIError
        If AWS rejects the request for any other reason
    ProviderConnectionError
        If the EC2 endpoint cannot be reached
    """
    try:
        yield
    except (NoCredentialsError, PartialCredentialsError, ProfileNotFound) as e:
        raise ProviderCredentialsError(str(e)) from e
    except NoRegionError as e:
        raise ProviderAPIError(str(e), error_code="NoRegion") from e
    except EndpointConnectionError as e:
        raise ProviderConnectionError(str(e)) from e
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code")
        logger.debug("AWS API error %s: %s", error_code, e)

        if error_code in CREDENTIAL_ERROR_CODES:
            raise ProviderCredentialsError(str(e)) from e

        raise ProviderAPIError(str(e), error_code=error_code) from e
