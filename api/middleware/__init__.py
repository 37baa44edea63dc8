# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains the error taxonomy, problem-document handlers and the
token authentication decorators used by the voting routes.
"""
