"""Release deployment and operations tooling for an off-grid IoT gateway."""

__version__ = "0.3.0"
