"""schemalens — entity-relationship neighborhood explorer for schema documentation."""

__version__ = "0.4.0"
