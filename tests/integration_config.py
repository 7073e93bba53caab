"""Configuration for integration tests.

Override these values via environment variables to match your local database setup.

Example:
    export WPDB_TEST_PROFILE=my_local_wp
    export WPDB_TEST_PREFIX=wp_
"""

import os

# Profile name configured in ~/.config/wpdb-tool/config.toml
TEST_PROFILE = os.environ.get("WPDB_TEST_PROFILE", "test_db")

# Table prefix of the WordPress install behind the test profile
TEST_PREFIX = os.environ.get("WPDB_TEST_PREFIX", "wp_")

# Scratch table created and dropped by the integration tests
TEST_TABLE = os.environ.get("WPDB_TEST_TABLE", f"{TEST_PREFIX}wpdb_tool_test")

# CLI profile arguments
PROFILE_ARGS = ["--profile", TEST_PROFILE]
