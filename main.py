"""
Entry point for CDN Deploy.

This module provides the main entry point that delegates to the package's CLI.
"""

from cdn_deploy.main import cli

if __name__ == "__main__":
    cli()
