"""Extract Prometheus metric names from Grafana dashboards and rule files."""

__version__ = "0.1.0"
