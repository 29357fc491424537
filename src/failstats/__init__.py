"""
failstats - fail2ban ban reporting agent

Tails fail2ban log output, extracts newly observed bans since the last
successful run and reports them to the failstats collector.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
