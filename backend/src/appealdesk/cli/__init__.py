"""CLI entry points for appealdesk.

Provides command-line tools for:
- Inspecting and exporting the reports directory
- Running the HTTP service
"""

import click

from .. import __version__
from .reports import cli as reports_cli
from .serve import serve


@click.group()
@click.version_option(version=__version__, prog_name="appealdesk")
def main():
    """appealdesk - report export service.

    Command-line tools for listing, resolving and bundling
    generated reports, and for serving them over HTTP.
    """
    pass


main.add_command(reports_cli, name="reports")
main.add_command(serve, name="serve")


if __name__ == "__main__":
    main()
