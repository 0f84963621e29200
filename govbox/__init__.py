"""
govbox

Deployment and lifecycle tooling for an OpenZeppelin governor that controls a
Box value store through a timelock.
"""

__version__ = "1.0.0"
