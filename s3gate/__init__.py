# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""s3gate: SigV4 signing proxy for S3-compatible object stores."""
