"""Nexus staging repository automation.

This package closes, promotes and drops Nexus staging repositories:
- Bounded retry engine with injectable sleep and cancellation
- Transition poller confirming asynchronous state changes
- Close / promote / drop operations and their composition
- Nexus REST client, configuration and command-line entry point
"""

__version__ = "0.1.0"
