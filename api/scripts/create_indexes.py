#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Script to create the MongoDB indexes of the vote store.

The unique (voterId, itemId) index is what enforces one vote per voter per
item, so deployments must run this before accepting votes.
"""

import sys
import os
import logging

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.mongodb import MongoVoteStore
from services.store import StoreError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """Create MongoDB indexes."""
    store = MongoVoteStore()
    try:
        logger.info("Starting MongoDB index creation...")

        health = store.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            sys.exit(1)

        logger.info(f"Connected to MongoDB {health['version']} - Database: {health['database']}")

        store.create_indexes()

        logger.info("MongoDB indexes created successfully!")

    except StoreError as e:
        logger.error(f"Failed to create indexes: {e}")
        sys.exit(1)
    finally:
        store.close_connection()


if __name__ == "__main__":
    main()
