"""IRS notice tracker: derived notice state, POA coverage and response billing."""

__version__ = "1.0.0"
