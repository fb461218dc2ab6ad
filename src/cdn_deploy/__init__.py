"""
CDN Deploy - synchronize local files into a CDN origin container.

Creates the target container when needed, optionally clears the destination
prefix, and uploads files concurrently with optional gzip compression.
"""

__version__ = "0.1.0"
__description__ = "Deploy static files to a CDN origin blob container"
