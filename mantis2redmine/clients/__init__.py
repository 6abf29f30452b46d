"""Database clients for the Mantis source and the Redmine target."""

from mantis2redmine.clients.mantis_client import MantisClient
from mantis2redmine.clients.redmine_client import RedmineClient

__all__ = ["MantisClient", "RedmineClient"]
