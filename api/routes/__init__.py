# SPDX-License-Identifier: Apache-2.0

"""
Routes package - Flask API blueprints for voting and election endpoints.
"""
