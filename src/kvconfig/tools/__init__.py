"""
File utilities for kvconfig.

This module contains configuration file discovery.
"""
