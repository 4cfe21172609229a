# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Exceptions raised by the SigV4 signer."""


class SigningError(Exception):
    """Base exception for signing failures."""


class SigningConfigError(SigningError, ValueError):
    """Signer was configured without required values.

    Raised before any cryptographic work is done (missing access key id,
    missing secret access key, missing or relative URL).
    """


class UnsupportedInputError(SigningError, TypeError):
    """Input is neither a raw URL nor a full request."""
