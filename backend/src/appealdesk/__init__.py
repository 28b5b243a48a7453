"""appealdesk - report export service for the appeal tracking backend."""

__version__ = "0.1.0"
