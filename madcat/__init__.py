"""Mass attack detection monitors that log ICMP and raw network traffic as JSON."""

__version__ = "2.1.4"