# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""AWS Signature Version 4 signing for S3-compatible stores.

The package is self-contained apart from ``werkzeug.datastructures``
(the header multimap) and performs no I/O.
"""

from s3gate.signing.canonical import (
    UNSIGNABLE_HEADERS,
    UNSIGNED_PAYLOAD,
    CanonicalRequest,
    build_canonical_request,
)
from s3gate.signing.errors import (
    SigningConfigError,
    SigningError,
    UnsupportedInputError,
)
from s3gate.signing.key_cache import SigningKeyCache, derive_signing_key
from s3gate.signing.signer import (
    DEFAULT_PRESIGN_EXPIRES,
    AwsV4Signer,
    SignerConfig,
    SigningRequest,
    presign_url,
    sign_request,
)


__all__ = [
    # canonical
    "UNSIGNABLE_HEADERS",
    "UNSIGNED_PAYLOAD",
    "CanonicalRequest",
    "build_canonical_request",
    # errors
    "SigningConfigError",
    "SigningError",
    "UnsupportedInputError",
    # key_cache
    "SigningKeyCache",
    "derive_signing_key",
    # signer
    "DEFAULT_PRESIGN_EXPIRES",
    "AwsV4Signer",
    "SignerConfig",
    "SigningRequest",
    "presign_url",
    "sign_request",
]
