"""Services — command line interface."""
