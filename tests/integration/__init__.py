# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Integration tests for the import-resolution components.

This package contains end-to-end tests that run the resolver against real
project layouts on disk.
"""
