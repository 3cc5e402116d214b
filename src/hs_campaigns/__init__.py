"""Core package for HubSpot campaign list creation.

This package houses the HubSpot client and list services, the per-campaign
worker, and the run sequencer that turns scheduled campaign configs into
populated static lists.
"""

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
